import math

import pytest

from multiludens.client import (
    ClientState,
    UsernamePrompt,
    gun_angle,
    move_players,
    spawn_bullet,
)
from multiludens.player import Player
from multiludens.protocol import PALETTE, uint_to_color


def test_roster_loads_players():
    state = ClientState()
    state.handle_packet(0, ":0 100 100 alice 0:1 5 6 bob 2")
    players = state.game.players
    assert sorted(players) == [0, 1]
    assert (players[0].x, players[0].y, players[0].username) == (100, 100, "alice")
    assert players[0].color == uint_to_color(0)
    assert (players[1].x, players[1].y, players[1].username) == (5, 6, "bob")
    assert players[1].color == uint_to_color(2)
    assert (players[1].nx, players[1].ny) == (5, 6)


def test_roster_strips_trailing_terminator_and_joins_name_parts():
    state = ClientState()
    state.handle_packet(0, ":3 1 2 big bob 4;")
    player = state.game.players[3]
    assert player.username == "big bob"
    assert player.color == uint_to_color(4)


def test_roster_skips_short_and_bad_entries():
    state = ClientState()
    state.handle_packet(0, ":1 2 3:x 1 2 name 0:7 8 9 ok 1")
    assert list(state.game.players) == [7]


def test_assigned_id():
    state = ClientState()
    state.handle_packet(1, "4")
    assert state.my_id == 4


def test_position_update_sets_target_only():
    state = ClientState()
    state.game.add_player(2, Player(10, 20))
    state.handle_packet(2, "2 30 40 90.5")
    player = state.game.players[2]
    assert (player.x, player.y) == (10, 20)
    assert (player.nx, player.ny, player.rot) == (30, 40, 90.5)


def test_position_update_for_unknown_player_is_ignored():
    state = ClientState()
    state.handle_packet(2, "9 30 40 1.0")
    assert state.game.players == {}


def test_position_update_malformed():
    with pytest.raises(ValueError):
        ClientState().handle_packet(2, "1 2")


def test_join_adds_player():
    state = ClientState()
    state.handle_packet(3, "5 11 12 carol 3")
    player = state.game.players[5]
    assert (player.x, player.y, player.username) == (11, 12, "carol")
    assert player.color == uint_to_color(3)


def test_join_malformed():
    with pytest.raises(ValueError):
        ClientState().handle_packet(3, "5 11 12")


def test_leave_removes_player_and_ignores_unknown():
    state = ClientState()
    state.game.add_player(1, Player())
    state.handle_packet(4, "7")
    assert list(state.game.players) == [1]
    state.handle_packet(4, "1")
    assert state.game.players == {}


def test_rename():
    state = ClientState()
    state.game.add_player(1, Player())
    state.handle_packet(5, "1 dave")
    assert state.game.players[1].username == "dave"


def test_rename_unknown_player_raises():
    with pytest.raises(KeyError):
        ClientState().handle_packet(5, "1 dave")


def test_color_change_and_unknown_ignored():
    state = ClientState()
    state.game.add_player(1, Player())
    state.handle_packet(6, "1 3")
    state.handle_packet(6, "8 2")
    assert state.game.players[1].color == uint_to_color(3)
    assert list(state.game.players) == [1]


def test_handle_packets_applies_in_order_and_skips_bad():
    state = ClientState()
    applied = state.handle_packets(
        ["1\n2;", "3\n2 1 1 eve 1;", "nonsense", "5\n9 ghost;", "5\n2 frank;"]
    )
    assert applied == 3
    assert state.my_id == 2
    assert state.game.players[2].username == "frank"


def test_prompt_rejects_forbidden_characters():
    prompt = UsernamePrompt()
    for ch in (":", " ", ";", "\n", ""):
        assert prompt.type_char(ch) is False
    assert prompt.text == ""


def test_prompt_length_limit():
    prompt = UsernamePrompt()
    accepted = [prompt.type_char(ch) for ch in "abcdefghijkl"]
    assert accepted.count(True) == 10
    assert prompt.text == "abcdefghij"
    assert prompt.remaining == 0


def test_prompt_backspace():
    prompt = UsernamePrompt()
    prompt.backspace()
    assert prompt.text == ""
    prompt.type_char("a")
    prompt.type_char("b")
    prompt.backspace()
    assert prompt.text == "a"


def test_prompt_color_cycles_with_wrap():
    prompt = UsernamePrompt()
    assert prompt.cycle_color(-1) == PALETTE[-1]
    assert prompt.cycle_color(1) == PALETTE[0]
    assert prompt.cycle_color(1) == PALETTE[1]


@pytest.mark.parametrize("pos", [(0, 0), (800, 600), (400, 0), (123, 456), (700, 300)])
def test_gun_angle_in_range(pos):
    angle = gun_angle(*pos)
    assert 0.0 <= angle < 360.0


def test_gun_angle_points_from_mouse_to_centre():
    assert gun_angle(0, 300) == 0.0
    angle = gun_angle(400, 600)
    assert math.isclose(math.sin(math.radians(angle)), -1.0)


def test_move_players_steps_toward_target_and_skips():
    players = {1: Player(0, 0, nx=10, ny=-10), 2: Player(0, 0, nx=10, ny=10)}
    move_players(players, 2)
    assert (players[1].x, players[1].y) == (players[1].speed, -players[1].speed)
    assert (players[2].x, players[2].y) == (0, 0)


def test_move_players_reaches_target():
    players = {1: Player(0, 0, nx=10, ny=4)}
    for _ in range(10):
        move_players(players, -1)
    assert (players[1].x, players[1].y) == (10, 4)


@pytest.mark.parametrize("rot", [0.0, 45.0, 90.0, 180.0, 270.0, 333.3])
def test_spawn_bullet_geometry(rot):
    player = Player(200, 300, rot=rot)
    bullet = spawn_bullet(player)
    assert math.isclose(math.hypot(*bullet.vel), 10.0)
    distance = math.hypot(bullet.x - 250, bullet.y - 350)
    assert abs(distance - 120.0) < 2.0
    before = math.hypot(bullet.x - 250, bullet.y - 350)
    bullet.move()
    assert math.hypot(bullet.x - 250, bullet.y - 350) > before