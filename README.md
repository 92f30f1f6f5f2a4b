# multiludens

A small top-down multiplayer arena game. One process runs the game server;
any number of players connect to it with the graphical client, pick a
username and a colour, walk around the tiled floor and fire bullets.

## Installing

```
pip install .
```

The client needs `pygame`, which is installed as a dependency. It looks for
its images in the directory it is started from: `floor_tile.png`,
`player_red.png`, `player_green.png`, `player_yellow.png`,
`player_purple.png` and `player_orangle.png`. An image that cannot be loaded
is logged and simply not drawn.

## Playing

Start the server. By default it listens on TCP port 50000 on all interfaces
and prints `Running.` once it is listening:

```
multiludens-server
multiludens-server --host 0.0.0.0 --port 50000
```

Then start one client per player. By default the client connects to
`127.0.0.1:50000`:

```
multiludens-client
multiludens-client --host 127.0.0.1 --port 50000
```

While the client waits for the server to assign it an id it shows
"waiting for server...". It then asks for a username of up to ten
characters (spaces, `:` and `;` are not accepted). Use the left and right
arrow keys to choose a colour among red, green, yellow, purple and orange,
then press Enter.

In the game:

- `W`, `A`, `S`, `D` move your player.
- The mouse aims the gun.
- Hold the left mouse button to shoot; a bar in the bottom-left panel shows
  the time until the next shot.

Other players' positions, names and colours are relayed by the server, and
their sprites glide toward the last position received.

## What it does not do

Bullets are only simulated and drawn in the client that fired them: they do
not hit players, and the server does not pass shots on to other clients (it
logs them as an unknown packet type). There is no score, health or
persistent storage.

## Protocol

Client and server exchange short text messages over TCP. Each message is a
numeric type, a newline, a payload, and a terminating `;`. The helpers in
`multiludens.protocol` implement this:

- `encode_message`, `send_message` and `broadcast_message` frame and send
  messages;
- `parse_packet` splits a packet into its type and payload;
- `split` splits a payload on a separator, keeping empty fields;
- `uint_to_color` and `color_to_uint` map the colour codes 0–4 used on the
  wire to the palette (`PALETTE`) and back.

`multiludens.server.GameServer` holds the shared state and can be driven
without a network: `handle_packet`, `process_packets`, `roster_payload` and
`announce_payload` work on its in-memory `game`. On the client side,
`multiludens.client.ClientState` applies server messages to a `Game`, and
`UsernamePrompt`, `gun_angle`, `move_players` and `spawn_bullet` hold the
game logic used by the window.

## Running the tests

```
pip install ".[test]"
pytest
```