"""Game client: receives the shared state, lets the player move, aim and shoot."""

from __future__ import annotations

import argparse
import codecs
import logging
import math
import socket
import threading
import time
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from multiludens.bullet import RADIUS, Bullet
from multiludens.game import Game
from multiludens.player import Player
from multiludens.protocol import (
    BLACK,
    GREEN,
    ORANGE,
    PALETTE,
    PURPLE,
    RED,
    TERMINATOR,
    YELLOW,
    Color,
    color_to_uint,
    parse_packet,
    send_message,
    split,
    uint_to_color,
)

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 50000
RECV_SIZE = 1024
SCREEN_WIDTH = 800
SCREEN_HEIGHT = 600
SCREEN_CENTER = (400, 300)
TARGET_FPS = 60
TILE_SIZE = 100
TILE_COUNT = 200
SPRITE_SIZE = 100
MAX_USERNAME = 10
FORBIDDEN_NAME_CHARS = frozenset({"\n", ":", " ", ";"})
BULLET_SPEED = 10.0
BULLET_SPAWN_DISTANCE = 120.0
SHOT_DELAY = 20
UPDATE_EVERY = 5

WHITE = Color(255, 255, 255)
GRAY = Color(130, 130, 130)
BLUE = Color(0, 121, 241)
DARKBLUE = Color(0, 82, 172)

PLAYER_SPRITES = {
    RED: "player_red.png",
    GREEN: "player_green.png",
    YELLOW: "player_yellow.png",
    PURPLE: "player_purple.png",
    ORANGE: "player_orangle.png",
}


@dataclass
class ClientState:
    """The client's view of the game and the id the server gave it."""

    game: Game = field(default_factory=Game)
    my_id: int = -1

    def handle_packet(self, packet_type: int, payload: str) -> None:
        """Apply one server message to the state.

        Raises ValueError for a malformed payload and KeyError when a rename
        names a player that is not known.
        """
        if packet_type != 2:
            log.info("%s", payload)

        players = self.game.players

        if packet_type == 0:
            self._load_roster(payload)
        elif packet_type == 1:
            fields = payload.split()
            if not fields:
                raise ValueError("missing player id")
            self.my_id = int(fields[0])
        elif packet_type == 2:
            fields = payload.split()
            if len(fields) < 4:
                raise ValueError(f"invalid position payload: {payload!r}")
            player_id, x, y = int(fields[0]), int(fields[1]), int(fields[2])
            rot = float(fields[3])
            player = players.get(player_id)
            if player is not None:
                player.nx, player.ny, player.rot = x, y, rot
        elif packet_type == 3:
            parts = split(payload, " ")
            if len(parts) < 5:
                raise ValueError(f"invalid join payload: {payload!r}")
            player_id, x, y = int(parts[0]), int(parts[1]), int(parts[2])
            players[player_id] = Player(
                x, y, username=parts[3], color=uint_to_color(int(parts[4]))
            )
        elif packet_type == 4:
            self.game.remove_player(int(payload))
        elif packet_type == 5:
            parts = split(payload, " ")
            if len(parts) < 2:
                raise ValueError(f"invalid rename payload: {payload!r}")
            player_id = int(parts[0])
            if player_id not in players:
                raise KeyError(player_id)
            players[player_id].username = parts[1]
        elif packet_type == 6:
            parts = split(payload, " ")
            if len(parts) < 2:
                raise ValueError(f"invalid colour payload: {payload!r}")
            player = players.get(int(parts[0]))
            if player is not None:
                player.color = uint_to_color(int(parts[1]))

    def _load_roster(self, payload: str) -> None:
        if payload.endswith(TERMINATOR):
            payload = payload[:-1]
        for entry in split(payload, ":"):
            if not entry:
                continue
            parts = split(entry, " ")
            if len(parts) < 5:
                log.error("Invalid player data: %s", entry)
                continue
            try:
                player_id, x, y = int(parts[0]), int(parts[1]), int(parts[2])
                code = int(parts[-1])
            except ValueError as exc:
                log.error("Error parsing player data: %s - %s", entry, exc)
                continue
            self.game.players[player_id] = Player(
                x,
                y,
                username=" ".join(parts[3:-1]),
                color=uint_to_color(code),
            )
            log.info("Player %d color code: %d", player_id, code)

    def handle_packets(self, packets: Iterable[str]) -> int:
        """Apply every raw packet in order, skipping malformed ones.

        Returns how many packets were applied.
        """
        applied = 0
        for packet in packets:
            try:
                packet_type, payload = parse_packet(packet)
                self.handle_packet(packet_type, payload)
            except (ValueError, KeyError) as exc:
                log.error("bad packet %r: %s", packet, exc)
                continue
            applied += 1
        return applied


@dataclass
class UsernamePrompt:
    """The name being typed and the colour being picked before joining."""

    text: str = ""
    color_index: int = 0
    options: tuple[Color, ...] = PALETTE

    @property
    def remaining(self) -> int:
        """Characters that may still be typed."""
        return MAX_USERNAME - len(self.text)

    @property
    def color(self) -> Color:
        """The colour currently picked."""
        return self.options[self.color_index]

    def type_char(self, ch: str) -> bool:
        """Append one character if it is allowed and fits; return whether it did."""
        if len(ch) != 1 or ch in FORBIDDEN_NAME_CHARS or ch == "\0":
            return False
        if len(self.text) >= MAX_USERNAME:
            return False
        self.text += ch
        return True

    def backspace(self) -> None:
        """Remove the last character, if any."""
        self.text = self.text[:-1]

    def cycle_color(self, step: int) -> Color:
        """Move the colour choice by ``step``, wrapping at either end."""
        last = len(self.options) - 1
        self.color_index += step
        if self.color_index < 0:
            self.color_index = last
        if self.color_index > last:
            self.color_index = 0
        return self.color


def gun_angle(mouse_x: float, mouse_y: float) -> float:
    """Angle in degrees, in [0, 360), from the mouse to the screen centre."""
    dx = SCREEN_CENTER[0] - mouse_x
    dy = SCREEN_CENTER[1] - mouse_y
    angle = math.degrees(math.atan2(dy, dx))
    return math.fmod(angle + 360.0, 360.0)


def move_players(players: Mapping[int, Player], skip: int) -> None:
    """Step every player except ``skip`` toward its target position."""
    for player_id, player in players.items():
        if player_id == skip:
            continue
        if player.x != player.nx:
            if player.x < player.nx:
                player.x += player.speed
            if player.x > player.nx:
                player.x -= player.speed
        if player.y != player.ny:
            if player.y < player.ny:
                player.y += player.speed
            if player.y > player.ny:
                player.y -= player.speed


def spawn_bullet(player: Player) -> Bullet:
    """Create a bullet leaving the player's gun in the direction it points."""
    angle = math.radians(-player.rot + 5)
    dir_x, dir_y = math.cos(angle), -math.sin(angle)
    vel = (dir_x * -BULLET_SPEED, dir_y * -BULLET_SPEED)
    spawn_x = player.x + SPRITE_SIZE / 2 + dir_x * -BULLET_SPAWN_DISTANCE
    spawn_y = player.y + SPRITE_SIZE / 2 + dir_y * -BULLET_SPAWN_DISTANCE
    return Bullet(int(spawn_x), int(spawn_y), vel)


# ---------------------------------------------------------------- networking


class _ServerLink:
    """Socket to the server with a background thread collecting messages."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.running = threading.Event()
        self.running.set()
        self._inbox: deque[str] = deque()
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._receive, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _receive(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while self.running.is_set():
            try:
                data = self.sock.recv(RECV_SIZE)
            except OSError as exc:
                if self.running.is_set():
                    log.error("Error receiving packet: %s", exc)
                self.running.clear()
                break
            if not data:
                print("Server disconnected.")
                self.running.clear()
                break
            pending += decoder.decode(data)
            *messages, pending = pending.split(TERMINATOR)
            with self._lock:
                self._inbox.extend(m for m in messages if m)

    def drain(self) -> list[str]:
        with self._lock:
            messages = list(self._inbox)
            self._inbox.clear()
        return messages

    def send(self, message: str) -> None:
        send_message(message, self.sock)

    def close(self) -> None:
        self.running.clear()
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()
        self._thread.join()


# ------------------------------------------------------------------- drawing


def _load_sprite(pygame: Any, path: str) -> Any | None:
    try:
        image = pygame.image.load(path).convert_alpha()
    except (pygame.error, FileNotFoundError) as exc:
        log.warning("could not load %s: %s", path, exc)
        return None
    return pygame.transform.scale(image, (SPRITE_SIZE, SPRITE_SIZE))


class _Renderer:
    def __init__(self, pygame: Any, screen: Any) -> None:
        self.pg = pygame
        self.screen = screen
        self._fonts: dict[int, Any] = {}
        self.floor = _load_sprite(pygame, "floor_tile.png")
        self.sprites = {
            color: sprite
            for color, path in PLAYER_SPRITES.items()
            if (sprite := _load_sprite(pygame, path)) is not None
        }

    def text(self, text: str, x: float, y: float, size: int, color: Color) -> None:
        self.screen.blit(self.font(size).render(text, True, color), (x, y))

    def font(self, size: int) -> Any:
        if size not in self._fonts:
            self._fonts[size] = self.pg.font.Font(None, size)
        return self._fonts[size]

    def waiting(self) -> None:
        self.screen.fill(BLACK)
        self.text("waiting for server...", 50, 50, 48, GREEN)
        self.text("loading...", 50, 100, 32, GREEN)

    def prompt(self, prompt: UsernamePrompt) -> None:
        self.screen.fill(BLACK)
        self.text("Pick a username", 50, 50, 64, WHITE)
        left_color = WHITE if len(prompt.text) < MAX_USERNAME else RED
        self.text(f"{prompt.remaining} characters left.", 50, 215, 32, left_color)
        self.pg.draw.rect(self.screen, BLUE, (50, 125, 500, 75))
        self.text(prompt.text, 75, 150, 48, BLACK)
        self.text("Choose color:", 50, 300, 32, WHITE)
        for slot, option in enumerate(prompt.options):
            x = 50 + slot * 100
            if option == prompt.color:
                self.pg.draw.rect(self.screen, WHITE, (x - 10, 340, 70, 70))
            self.pg.draw.rect(self.screen, option, (x, 350, 50, 50))

    def world(
        self,
        camera: tuple[float, float],
        players: Mapping[int, Player],
        bullets: Iterable[Bullet],
    ) -> None:
        cam_x, cam_y = camera
        self.screen.fill(BLUE)
        if self.floor is not None:
            first_col = max(0, int(cam_x // TILE_SIZE))
            first_row = max(0, int(cam_y // TILE_SIZE))
            last_col = min(TILE_COUNT, int((cam_x + SCREEN_WIDTH) // TILE_SIZE) + 1)
            last_row = min(TILE_COUNT, int((cam_y + SCREEN_HEIGHT) // TILE_SIZE) + 1)
            for col in range(first_col, last_col):
                for row in range(first_row, last_row):
                    self.screen.blit(
                        self.floor, (col * TILE_SIZE - cam_x, row * TILE_SIZE - cam_y)
                    )
        for player in players.values():
            if player.username == "unset":
                continue
            px, py = player.x - cam_x, player.y - cam_y
            sprite = self.sprites.get(Color(*player.color))
            if sprite is not None:
                self.screen.blit(sprite, (px, py))
            label = self.font(32).render(player.username, True, BLACK)
            self.screen.blit(label, (px + 50 - label.get_width() / 2, py - 50))
            self._gun(px + 50, py + 50, player.rot)
        for bullet in bullets:
            self.pg.draw.circle(
                self.screen, GRAY, (bullet.x - cam_x, bullet.y - cam_y), RADIUS
            )

    def _gun(self, pivot_x: float, pivot_y: float, rot: float) -> None:
        cos_r, sin_r = math.cos(math.radians(rot)), math.sin(math.radians(rot))
        corners = [(-100, 0), (-50, 0), (-50, 20), (-100, 20)]
        points = [
            (pivot_x + cx * cos_r - cy * sin_r, pivot_y + cx * sin_r + cy * cos_r)
            for cx, cy in corners
        ]
        self.pg.draw.polygon(self.screen, BLACK, points)

    def ui(self, color: Color, username: str, delay: int, fps: float) -> None:
        self.text(f"{fps:.0f} FPS", 2, 2, 20, GREEN)
        self.pg.draw.rect(self.screen, DARKBLUE, (0, 500, 300, 100))
        self.pg.draw.rect(self.screen, color, (10, 510, 80, 80))
        self.text(username, 100, 515, 24, BLACK)
        if delay != 0:
            self.pg.draw.rect(self.screen, GREEN, (100, 540, delay * 2, 10))


# --------------------------------------------------------------------- main


def _play(pygame: Any, link: _ServerLink) -> None:
    pygame.init()
    screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
    pygame.display.set_caption("Multi Ludens")
    clock = pygame.time.Clock()
    renderer = _Renderer(pygame, screen)
    pygame.key.start_text_input()

    state = ClientState()
    players = state.game.players
    bullets = state.game.bullets
    prompt = UsernamePrompt()
    username_chosen = False
    my_color = BLACK
    update_counter = 0
    shot_delay = SHOT_DELAY
    can_shoot = False

    while link.running.is_set():
        events = pygame.event.get()
        if any(event.type == pygame.QUIT for event in events):
            break
        clock.tick(TARGET_FPS)
        state.handle_packets(link.drain())
        my_id = state.my_id

        if my_id == -1:
            renderer.waiting()
            pygame.display.flip()
            continue

        if not username_chosen:
            for event in events:
                if event.type == pygame.TEXTINPUT:
                    for ch in event.text:
                        prompt.type_char(ch)
                elif event.type == pygame.KEYDOWN:
                    if event.key == pygame.K_BACKSPACE:
                        prompt.backspace()
                    elif event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                        if prompt.text:
                            players.setdefault(my_id, Player()).username = prompt.text
                            username_chosen = True
                            link.send("5\n" + prompt.text)
                            time.sleep(2)
                            link.send(f"6\n{color_to_uint(prompt.color)}")
                    elif event.key == pygame.K_LEFT:
                        prompt.cycle_color(-1)
                    elif event.key == pygame.K_RIGHT:
                        prompt.cycle_color(1)
            renderer.prompt(prompt)
            pygame.display.flip()
            continue

        me = players.setdefault(my_id, Player())
        if my_color == BLACK:
            my_color = prompt.color
            me.color = my_color

        update_counter += 1
        pressed = pygame.key.get_pressed()
        keys = {
            name
            for name, code in (
                ("w", pygame.K_w),
                ("a", pygame.K_a),
                ("s", pygame.K_s),
                ("d", pygame.K_d),
            )
            if pressed[code]
        }
        moved = me.move(keys)
        old_rot = me.rot
        me.rot = gun_angle(*pygame.mouse.get_pos())
        gun_still = me.rot == old_rot

        if update_counter >= UPDATE_EVERY and (moved or gun_still):
            link.send(f"2\n{me.x} {me.y} {me.rot:.6f}")
            update_counter = 0

        move_players(players, my_id)
        for bullet in bullets:
            bullet.move()

        if not can_shoot:
            shot_delay -= 1
            if shot_delay == 0:
                can_shoot = True

        if pygame.mouse.get_pressed()[0] and can_shoot:
            can_shoot = False
            shot_delay = SHOT_DELAY
            bullets.append(spawn_bullet(me))
            link.send(f"10\n {me.rot:.6f}")

        camera = (me.x - 350, me.y - 250)
        renderer.world(camera, players, bullets)
        renderer.ui(my_color, me.username, shot_delay, clock.get_fps())
        pygame.display.flip()


def main(argv: list[str] | None = None) -> int:
    """Connect to the server and run the game window."""
    parser = argparse.ArgumentParser(description="Multi Ludens game client.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        sock = socket.create_connection((args.host, args.port))
    except OSError as exc:
        print(f"Could not connect to server: {exc}")
        return -1

    import pygame

    link = _ServerLink(sock)
    link.start()
    try:
        _play(pygame, link)
    finally:
        print("Closing.")
        link.close()
        pygame.quit()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())