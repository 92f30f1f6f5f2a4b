"""Multiplayer top-down arena game: TCP game server, pygame client and wire protocol."""

__version__ = "0.1.0"
__all__ = ["__version__"]