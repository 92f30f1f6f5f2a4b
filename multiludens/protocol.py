"""Wire protocol helpers: colour codes, message framing and packet parsing."""

from __future__ import annotations

import logging
import socket
from collections.abc import Iterable
from typing import NamedTuple

log = logging.getLogger(__name__)

TERMINATOR = ";"
UNKNOWN_COLOR_CODE = 5


class Color(NamedTuple):
    """An RGBA colour, usable directly wherever pygame expects a colour."""

    r: int
    g: int
    b: int
    a: int = 255


RED = Color(230, 41, 55)
GREEN = Color(0, 228, 48)
YELLOW = Color(253, 249, 0)
PURPLE = Color(200, 122, 255)
ORANGE = Color(255, 161, 0)
BLACK = Color(0, 0, 0)

PALETTE: tuple[Color, ...] = (RED, GREEN, YELLOW, PURPLE, ORANGE)


def uint_to_color(code: int) -> Color:
    """Return the palette colour for a wire code, or black for unknown codes."""
    if 0 <= code < len(PALETTE):
        return PALETTE[code]
    return BLACK


def color_to_uint(color: Iterable[int]) -> int:
    """Return the wire code of a palette colour, or 5 if it is not in the palette."""
    target = Color(*color)
    for code, candidate in enumerate(PALETTE):
        if candidate == target:
            return code
    return UNKNOWN_COLOR_CODE


def color_sort_key(color: Iterable[int]) -> tuple[int, int, int, int]:
    """Key ordering colours by red, green, blue, then alpha."""
    c = Color(*color)
    return (c.r, c.g, c.b, c.a)


def split(text: str, sep: str) -> list[str]:
    """Split on every occurrence of ``sep``, keeping empty fields."""
    if not sep:
        raise ValueError("empty separator")
    return text.split(sep)


def encode_message(msg: str) -> bytes:
    """Frame a message for the wire by appending the terminator."""
    return (msg + TERMINATOR).encode()


def send_message(msg: str, sock: socket.socket) -> bool:
    """Send one framed message; log and return False if the send fails."""
    try:
        sock.sendall(encode_message(msg))
    except OSError as exc:
        log.warning("error sending message: %s", exc)
        return False
    return True


def broadcast_message(msg: str, socks: Iterable[socket.socket]) -> None:
    """Send the same message to every socket."""
    for sock in socks:
        send_message(msg, sock)


def parse_packet(packet: str) -> tuple[int, str]:
    """Split a packet into its numeric type and its payload.

    The type is the text before the first newline; the payload runs from
    after it up to the first terminator, or to the end if there is none.
    """
    head, _, tail = packet.partition("\n")
    try:
        packet_type = int(head.strip())
    except ValueError:
        raise ValueError(f"invalid packet type: {head!r}") from None
    payload, _, _ = tail.partition(TERMINATOR)
    return packet_type, payload