"""Bullets fired by players."""

from __future__ import annotations

from dataclasses import dataclass

RADIUS = 10.0


@dataclass
class Bullet:
    """A bullet at an integer position moving with a constant velocity."""

    x: int = 0
    y: int = 0
    vel: tuple[float, float] = (0.0, 0.0)

    def move(self) -> None:
        """Advance one step; the position is truncated toward zero."""
        vx, vy = self.vel
        self.x = int(self.x + vx)
        self.y = int(self.y + vy)