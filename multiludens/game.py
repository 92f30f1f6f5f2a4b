"""Shared game state."""

from __future__ import annotations

from dataclasses import dataclass, field

from multiludens.bullet import Bullet
from multiludens.player import Player


@dataclass
class Game:
    """Players keyed by id, plus the bullets in flight."""

    players: dict[int, Player] = field(default_factory=dict)
    bullets: list[Bullet] = field(default_factory=list)

    def add_player(self, player_id: int, player: Player | None = None) -> Player:
        """Store a player under ``player_id``, replacing any earlier one."""
        if player is None:
            player = Player()
        self.players[player_id] = player
        return player

    def remove_player(self, player_id: int) -> Player | None:
        """Remove and return the player with that id, or None if absent."""
        return self.players.pop(player_id, None)