"""Player state and keyboard movement."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field

from multiludens.protocol import RED, Color

DEFAULT_POSITION = 100


@dataclass
class Player:
    """A player on the map; ``nx``/``ny`` is the position it is heading to."""

    x: int = DEFAULT_POSITION
    y: int = DEFAULT_POSITION
    nx: int | None = None
    ny: int | None = None
    speed: int = 2
    color: Color = field(default=RED)
    username: str = "unset"
    rot: float = 0.0

    def __post_init__(self) -> None:
        if self.nx is None:
            self.nx = self.x
        if self.ny is None:
            self.ny = self.y

    def move(self, keys: Collection[str]) -> bool:
        """Move by the held W/A/S/D keys; return whether any of them is held."""
        held = {k.lower() for k in keys}
        dx = dy = 0
        if "w" in held:
            dy -= self.speed
        if "s" in held:
            dy += self.speed
        if "a" in held:
            dx -= self.speed
        if "d" in held:
            dx += self.speed
        self.x += dx
        self.y += dy
        return bool(held & {"w", "a", "s", "d"})