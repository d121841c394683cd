# mrjsystem

A small distributed system in which users ask remote workers to handle
("distort") their files. It has three kinds of process:

- **Gotham** is the coordinator. It keeps a registry of connected workers,
  picks a principal worker for each media type, checks on workers with
  heartbeats, and tells Fleck clients which worker to use.
- **Fleck** is the interactive client a user runs. It connects to Gotham,
  lists local files and sends distortion requests.
- **Enigma** (text files) and **Harley** (media files) are workers. They
  register with Gotham, answer its heartbeats, and once they become the
  principal worker for their type they accept connections from Flecks.

All processes talk over TCP using fixed 256-byte frames: one type byte, a
two-byte data length, up to 247 bytes of data, a two-byte checksum and a
four-byte timestamp, all big-endian. The checksum is the sum, modulo 65536,
of every byte except the checksum itself.

## Installation

```
pip install .
```

No third-party libraries are needed. To run the tests:

```
pip install ".[test]"
pytest
```

## Running

Each program takes the path of a configuration file with one value per line.

### Gotham

```
mrj-gotham gotham.conf
```

`gotham.conf`:

```
127.0.0.1
8000
127.0.0.1
8001
```

The lines are: address for Flecks, port for Flecks, address for workers,
port for workers. Gotham prints its configuration, listens on both
addresses, and sends every worker a heartbeat every 5 seconds. Stop it with
Ctrl+C; it closes both servers and every connection before exiting.

### Workers

```
mrj-enigma enigma.conf
mrj-harley harley.conf
```

`enigma.conf`:

```
127.0.0.1
8001
127.0.0.1
8101
workdir/enigma
Text
```

The lines are: Gotham's address, Gotham's port for workers, the address and
port this worker listens on for Flecks, its working directory, and its type
(`Text` for Enigma, `Media` for Harley). The first worker of each type to
connect becomes the principal one; the others answer heartbeats and wait
until Gotham promotes them when the principal leaves. Ctrl+C sends Gotham a
disconnection frame and closes the worker's connections.

### Fleck

```
mrj-fleck fleck.conf
```

`fleck.conf`:

```
alice
/alice
127.0.0.1
8000
```

The lines are: user name (any `&` is dropped), user directory, Gotham's
address and Gotham's port for Flecks. The directory listed is the text
`users` followed directly by the user directory, so `/alice` means
`users/alice`.

At the `$` prompt the following commands are understood (the command word
and its keyword are case-insensitive):

| Command                      | Effect                                                  |
|------------------------------|---------------------------------------------------------|
| `connect`                    | Connect to Gotham                                       |
| `list media`                 | List `.wav`, `.jpg` and `.png` files in the user dir    |
| `list text`                  | List `.txt` files in the user dir                       |
| `distort <file> <factor>`    | Ask Gotham for a worker and contact it                  |
| `check status`               | Only acknowledges the command                           |
| `clear all`                  | Only acknowledges the command                           |
| `logout`                     | Tell Gotham you are leaving and end the prompt          |

Media files are `.png`, `.jpg`, `.jpeg`, `.bmp`, `.tga` and `.wav`; text
files are `.txt`, `.md`, `.log` and `.csv`. Only one distortion of each kind
can run at a time. When the prompt ends, Fleck makes one more connection to
Gotham and exits with a failure status if that connection fails.

## What it does not do

- No file is transferred and nothing is distorted. For `distort`, Fleck
  connects to the worker, computes the file's size and MD5 digest, prints
  the request `<user>&<file>&<size>&<md5>`, and closes the connection.
- A worker answers the first message from a Fleck with a short accept reply
  when its first byte is `0x01` (a reject reply otherwise) and then only
  prints whatever the Fleck sends; it never writes to its working directory.
- `check status` and `clear all` report no progress and remove nothing.

## Library use

The pieces can be used on their own:

- `mrjsystem.frames`: `build_frame`, `parse_frame`, `compute_checksum`,
  `Frame`, `FrameType`, `FrameError`.
- `mrjsystem.connections`: `Server`, `send_frame`, `recv_frame`,
  `send_heartbeats`, `answer_heartbeats`.
- `mrjsystem.common`: `read_until`, `remove_ampersand`, `has_extension`,
  `list_files`, `file_type`, `strip_line_end`.
- `mrjsystem.gotham_registry`: `WorkerRegistry`, `WorkerRecord`,
  `RegistryFull`.
- `mrjsystem.gotham_server.Gotham`, `mrjsystem.fleck.FleckShell`,
  `mrjsystem.worker_node.WorkerNode` for the three programs, and
  `mrjsystem.fleck_distort` (`parse_worker_info`, `file_size`, `md5sum`,
  `run_distort`) for distortion requests.