import pytest

from multiludens.player import Player
from multiludens.protocol import BLACK, PURPLE, RED
from multiludens.server import Connection, GameServer


class FakeSocket:
    def __init__(self):
        self.sent = b""
        self.closed = False

    def sendall(self, data):
        self.sent += data

    def shutdown(self, how):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def server():
    return GameServer(join_delay=0, removal_delay=0)


def connect(server, player_id):
    sock = FakeSocket()
    server.clients[player_id] = Connection(sock)
    server.is_running[player_id] = True
    server.add_player(player_id)
    return sock


def test_next_free_id_empty(server):
    assert server.next_free_id() == 0


def test_next_free_id_fills_gap(server):
    for pid in (0, 1, 3):
        server.add_player(pid)
    assert server.next_free_id() == 2


def test_add_player_defaults(server):
    p = server.add_player(0)
    assert (p.x, p.y, p.username, p.color) == (100, 100, "unset", RED)


def test_add_player_keeps_existing(server):
    server.game.add_player(4, Player(7, 8, username="bob"))
    p = server.add_player(4)
    assert (p.x, p.y, p.username) == (7, 8, "bob")


def test_roster_payload_sanitises(server):
    server.add_player(0)
    p = server.add_player(1)
    p.username = "a b;c"
    p.color = BLACK
    assert server.roster_payload() == ":0 100 100 unset 0:1 100 100 a_b_c 1"


def test_roster_payload_empty_name_becomes_unset(server):
    server.add_player(0).username = ""
    assert server.roster_payload() == ":0 100 100 unset 0"


def test_announce_payload(server):
    server.add_player(0)
    assert server.announce_payload(0) == "0 100 100 unset 0"


def test_position_update_relayed_to_others(server):
    sock0 = connect(server, 0)
    sock1 = connect(server, 1)
    out = server.handle_packet(0, "2\n5 6 90.5;")
    player = server.game.players[0]
    assert (player.x, player.y, player.rot) == (5, 6, 90.5)
    assert out == [(1, "2\n0 5 6 90.5")]
    assert sock1.sent == b"2\n0 5 6 90.5;"
    assert sock0.sent == b""


def test_position_update_from_unknown_player_ignored(server):
    connect(server, 1)
    assert server.handle_packet(9, "2\n5 6 1.0") == []
    assert 9 not in server.game.players


def test_username_update(server):
    connect(server, 0)
    sock1 = connect(server, 1)
    out = server.handle_packet(0, "5\nbob;")
    assert server.game.players[0].username == "bob"
    assert out == [(1, "5\n0 bob")]
    assert sock1.sent == b"5\n0 bob;"


def test_color_update(server):
    connect(server, 0)
    connect(server, 1)
    out = server.handle_packet(1, "6\n3")
    assert server.game.players[1].color == PURPLE
    assert out == [(0, "6\n1 3")]


def test_unknown_packet_type_ignored(server):
    sock1 = connect(server, 1)
    connect(server, 0)
    assert server.handle_packet(0, "10\n 45.0") == []
    assert sock1.sent == b""


def test_malformed_packet_raises(server):
    with pytest.raises(ValueError):
        server.handle_packet(0, "abc\npayload")


def test_process_packets_newest_first(server):
    connect(server, 0)
    server.packets.appendleft((0, "5\nfirst"))
    server.packets.appendleft((0, "5\nsecond"))
    assert server.process_packets() == 2
    assert server.game.players[0].username == "first"
    assert len(server.packets) == 0


def test_process_packets_survives_bad_packet(server):
    connect(server, 0)
    server.packets.appendleft((0, "5\nalice"))
    server.packets.appendleft((0, "x\nbroken"))
    assert server.process_packets() == 2
    assert server.game.players[0].username == "alice"


def test_remove_disconnected(server):
    sock0 = connect(server, 0)
    sock1 = connect(server, 1)
    server.is_running[0] = False
    assert server.remove_disconnected() == [0]
    assert 0 not in server.game.players
    assert 0 not in server.clients
    assert sock0.closed
    assert sock1.sent == b"4\n0;"
    assert server.remove_disconnected() == []