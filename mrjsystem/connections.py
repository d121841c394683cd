"""TCP server wrapper, frame transport and heartbeat loops."""

from __future__ import annotations

import socket
import sys
import time

from .frames import FRAME_SIZE, Frame, FrameError, FrameType, build_frame, parse_frame

MAX_CONNECTIONS = 10
HEARTBEAT_SLEEP_TIME = 5


class Server:
    """A bound IPv4 TCP listening socket."""

    def __init__(self, host: str, port: int, max_connections: int = MAX_CONNECTIONS) -> None:
        self.host = host
        self.max_connections = max_connections
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._sock.bind((host, port))
        except OSError:
            self._sock.close()
            raise
        self.port = self._sock.getsockname()[1]

    @property
    def closed(self) -> bool:
        return self._sock.fileno() < 0

    def start(self) -> None:
        """Begin listening for connections."""
        try:
            self._sock.listen(self.max_connections)
        except OSError:
            self._sock.close()
            raise
        print(f"Servidor escuchando en el puerto {self.port}..")

    def accept(self) -> socket.socket:
        """Wait for and return the next client connection."""
        connection, _address = self._sock.accept()
        return connection

    def close(self) -> None:
        """Close the listening socket."""
        if not self.closed:
            self._sock.close()
        print("Servidor cerrado.")

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def send_frame(sock: socket.socket, frame_type: int, data: bytes | str = b"") -> None:
    """Build a frame and send all of its 256 bytes."""
    sock.sendall(build_frame(frame_type, data))


def recv_frame(sock: socket.socket) -> Frame | None:
    """Receive and decode one frame.

    Returns ``None`` when the peer closed the connection before a frame
    started. Raises ``ConnectionError`` if it closed in the middle of one and
    ``FrameError`` if the frame is invalid.
    """
    buffer = bytearray()
    while len(buffer) < FRAME_SIZE:
        chunk = sock.recv(FRAME_SIZE - len(buffer))
        if not chunk:
            if not buffer:
                return None
            raise ConnectionError("connection closed in the middle of a frame")
        buffer += chunk
    return parse_frame(bytes(buffer))


def send_heartbeats(sock: socket.socket, interval: float = HEARTBEAT_SLEEP_TIME) -> None:
    """Send a heartbeat, wait for the answer, and repeat every ``interval`` seconds.

    Returns when the peer closes the connection, sends a disconnection frame,
    or the connection fails.
    """
    while True:
        try:
            send_frame(sock, FrameType.HEARTBEAT)
        except OSError as error:
            print(f"Error enviando heartbeat: {error}", file=sys.stderr)
            sock.close()
            return

        try:
            frame = recv_frame(sock)
        except FrameError as error:
            print(f"Error: {error}", file=sys.stderr)
            frame = None
            time.sleep(interval)
            continue
        except OSError as error:
            print(f"Error leyendo respuesta del cliente: {error}", file=sys.stderr)
            return

        if frame is None:
            print("El cliente ha cerrado la conexión..")
            return
        if frame.type == FrameType.DISCONNECTION:
            print("El cliente ha cerrado la conexión...")
            return

        time.sleep(interval)


def answer_heartbeats(sock: socket.socket) -> None:
    """Reply to every heartbeat frame until the connection ends, then close it."""
    while True:
        try:
            frame = recv_frame(sock)
        except FrameError as error:
            print(f"Error: {error}", file=sys.stderr)
            continue
        except OSError as error:
            print(f"Error leyendo mensaje del servidor: {error}", file=sys.stderr)
            sock.close()
            return

        if frame is None:
            print("El servidor ha cerrado la conexión.")
            sock.close()
            return

        if frame.type == FrameType.HEARTBEAT:
            try:
                send_frame(sock, FrameType.HEARTBEAT)
            except OSError as error:
                print(f"Error enviando respuesta al servidor: {error}", file=sys.stderr)
                sock.close()
                return