"""Game server: accepts players, keeps the shared state and relays updates."""

from __future__ import annotations

import argparse
import codecs
import logging
import socket
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any

from multiludens.game import Game
from multiludens.player import Player
from multiludens.protocol import (
    RED,
    TERMINATOR,
    color_to_uint,
    parse_packet,
    send_message,
    uint_to_color,
)

log = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 50000
RECV_SIZE = 1024
LISTEN_BACKLOG = 5
TICK_SECONDS = 0.01
UNSAFE_NAME_CHARS = (";", ":", " ")


@dataclass
class Connection:
    """A connected client: its socket and the thread serving it."""

    sock: Any
    thread: threading.Thread | None = None


class GameServer:
    """Holds the game state, the connected clients and the pending packets."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        join_delay: float = 3.0,
        removal_delay: float = 0.1,
    ) -> None:
        self.host = host
        self.port = port
        self.join_delay = join_delay
        self.removal_delay = removal_delay
        self.game = Game()
        self.clients: dict[int, Connection] = {}
        self.is_running: dict[int, bool] = {}
        # Newest packets sit at the left and are handled first.
        self.packets: deque[tuple[int, str]] = deque()
        self.address: tuple[str, int] | None = None
        self._game_lock = threading.RLock()
        self._clients_lock = threading.RLock()
        self._packets_lock = threading.Lock()
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------ state

    def next_free_id(self) -> int:
        """Return the smallest id not used by a player or a connection."""
        with self._game_lock, self._clients_lock:
            taken = set(self.game.players) | set(self.clients)
        player_id = 0
        while player_id in taken:
            player_id += 1
        return player_id

    def add_player(self, player_id: int) -> Player:
        """Add a default player under ``player_id`` unless one is already there."""
        with self._game_lock:
            existing = self.game.players.get(player_id)
            if existing is not None:
                return existing
            return self.game.add_player(
                player_id, Player(100, 100, username="unset", color=RED)
            )

    def roster_payload(self) -> str:
        """Describe every player as ``:id x y name color`` entries, sanitised."""
        entries = []
        with self._game_lock:
            for player_id, player in sorted(self.game.players.items()):
                name = player.username or "unset"
                for bad in UNSAFE_NAME_CHARS:
                    name = name.replace(bad, "_")
                code = color_to_uint(player.color)
                if code > 4:
                    code = 1
                entries.append(f":{player_id} {player.x} {player.y} {name} {code}")
        return "".join(entries)

    def announce_payload(self, player_id: int) -> str:
        """Describe one player as ``id x y name color`` for announcing a join."""
        with self._game_lock:
            player = self.game.players[player_id]
            return (
                f"{player_id} {player.x} {player.y} {player.username} "
                f"{color_to_uint(player.color)}"
            )

    # ---------------------------------------------------------------- sending

    def _send_to_others(self, from_id: int, message: str) -> list[tuple[int, str]]:
        with self._clients_lock:
            targets = [(k, c.sock) for k, c in self.clients.items() if k != from_id]
        for _, sock in targets:
            send_message(message, sock)
        return [(k, message) for k, _ in targets]

    # ---------------------------------------------------------------- packets

    def handle_packet(self, from_id: int, packet: str) -> list[tuple[int, str]]:
        """Apply one packet from a client and relay it.

        Returns the ``(recipient id, message)`` pairs that were sent.
        Raises ValueError if the packet is malformed.
        """
        packet_type, payload = parse_packet(packet)

        if packet_type == 2:
            fields = payload.split()
            if len(fields) < 3:
                raise ValueError(f"invalid position payload: {payload!r}")
            x, y, rot = int(fields[0]), int(fields[1]), float(fields[2])
            with self._game_lock:
                player = self.game.players.get(from_id)
                if player is None:
                    return []
                player.x, player.y, player.rot = x, y, rot
            return self._send_to_others(from_id, f"2\n{from_id} {payload}")

        if packet_type == 5:
            with self._game_lock:
                self.game.players.setdefault(from_id, Player()).username = payload
            return self._send_to_others(from_id, f"5\n{from_id} {payload}")

        if packet_type == 6:
            code = int(payload)
            log.info("received code 6, setting player color to %d", code)
            with self._game_lock:
                player = self.game.players.setdefault(from_id, Player())
                player.color = uint_to_color(code)
                log.info("color is now %d", color_to_uint(player.color))
            return self._send_to_others(from_id, f"6\n{from_id} {payload}")

        log.error("INVALID PACKET TYPE: %d", packet_type)
        return []

    def process_packets(self) -> int:
        """Handle and drop every queued packet; return how many there were."""
        with self._packets_lock:
            pending = list(self.packets)
            self.packets.clear()
        for from_id, packet in pending:
            try:
                self.handle_packet(from_id, packet)
            except ValueError as exc:
                log.error("bad packet from %d: %s", from_id, exc)
        return len(pending)

    def remove_disconnected(self) -> list[int]:
        """Drop clients that stopped running and tell the others; return their ids."""
        removed = []
        with self._clients_lock:
            gone = [pid for pid, alive in self.is_running.items() if not alive]
            for player_id in gone:
                conn = self.clients.pop(player_id, None)
                self.is_running.pop(player_id, None)
                if conn is not None:
                    thread = conn.thread
                    if (
                        thread is not None
                        and thread.is_alive()
                        and thread is not threading.current_thread()
                    ):
                        thread.join()
                    try:
                        conn.sock.shutdown(socket.SHUT_RDWR)
                    except OSError:
                        pass
                    conn.sock.close()
                if self.removal_delay > 0:
                    time.sleep(self.removal_delay)
                self._send_to_others(player_id, f"4\n{player_id}")
                with self._game_lock:
                    self.game.remove_player(player_id)
                log.info("Removed client %d", player_id)
                removed.append(player_id)
        return removed

    # ------------------------------------------------------------- networking

    def _running(self, player_id: int) -> bool:
        with self._clients_lock:
            return self.is_running.get(player_id, False)

    def _handle_client(self, sock: socket.socket, player_id: int) -> None:
        self.add_player(player_id)
        roster = self.roster_payload()
        log.debug("roster: %s", roster)
        send_message("0\n" + roster, sock)

        if self.join_delay > 0:
            time.sleep(self.join_delay)
        send_message(f"1\n{player_id}", sock)
        with self._game_lock:
            known = player_id in self.game.players
        if known:
            self._send_to_others(player_id, "3\n" + self.announce_payload(player_id))

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while self._running(player_id):
            try:
                data = sock.recv(RECV_SIZE)
            except OSError:
                break
            if not data or not self._running(player_id):
                break
            pending += decoder.decode(data)
            *messages, pending = pending.split(TERMINATOR)
            with self._packets_lock:
                for message in messages:
                    if message:
                        self.packets.appendleft((player_id, message))

        with self._clients_lock:
            self.is_running[player_id] = False
            with self._game_lock:
                self.game.remove_player(player_id)
        log.info("Client %d disconnected.", player_id)

    def _accept_clients(self, listener: socket.socket) -> None:
        while not self._stop_event.is_set():
            try:
                sock, _ = listener.accept()
            except OSError:
                break
            with self._clients_lock:
                player_id = self.next_free_id()
                self.add_player(player_id)
                thread = threading.Thread(
                    target=self._handle_client, args=(sock, player_id), daemon=True
                )
                self.clients[player_id] = Connection(sock, thread)
                self.is_running[player_id] = True
                thread.start()

    def serve_forever(self) -> None:
        """Listen for players and run the game loop until stopped."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind((self.host, self.port))
            listener.listen(LISTEN_BACKLOG)
            self.address = listener.getsockname()
            threading.Thread(
                target=self._accept_clients, args=(listener,), daemon=True
            ).start()
            print("Running.")
            while not self._stop_event.is_set():
                time.sleep(TICK_SECONDS)
                self.remove_disconnected()
                self.process_packets()


def main(argv: list[str] | None = None) -> int:
    """Run the game server."""
    parser = argparse.ArgumentParser(description="Multi Ludens game server.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    server = GameServer(args.host, args.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"Failed to start server: {exc}")
        return -1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())