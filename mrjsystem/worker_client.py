"""Worker side of the link with Gotham: configuration, registration and heartbeats."""

from __future__ import annotations

import re
import socket
import sys
from dataclasses import dataclass
from os import PathLike

from .common import MEDIA, TEXT, read_until, strip_line_end
from .connections import recv_frame, send_frame
from .frames import FRAME_SIZE, FrameError, FrameType

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _to_int(text: str) -> int:
    """Parse the leading integer of ``text``; 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


@dataclass
class WorkerConfig:
    """Where Gotham is, where the Worker listens for Flecks, its directory and its type."""

    ip_gotham: str
    port_gotham: int
    ip_fleck: str
    port_fleck: int
    worker_dir: str
    worker_type: str

    def describe(self) -> str:
        """Return the configuration as the text shown at start-up."""
        return (
            f"IP Gotham: {self.ip_gotham}\n"
            f"Puerto Gotham: {self.port_gotham}\n"
            f"IP Worker: {self.ip_fleck}\n"
            f"Puerto Worker: {self.port_fleck}\n"
            f"Directorio Worker: {self.worker_dir}\n"
            f"Tipo de Worker: {self.worker_type}\n"
            "\n"
        )


def read_config(path: str | PathLike[str]) -> WorkerConfig:
    """Read a six-line Worker configuration file.

    The lines hold the Gotham IP and port, the IP and port Flecks connect to,
    the working directory and the Worker type. Raises ``OSError`` when the
    file cannot be opened and ``ValueError`` when a line is missing.
    """
    labels = (
        "la IP de Gotham",
        "el puerto de Gotham",
        "la IP del Worker",
        "el puerto del Worker",
        "el directorio del Worker",
        "el tipo de Worker",
    )
    values = []
    with open(path, "rb") as stream:
        for label in labels:
            line = read_until(stream, "\n")
            if line is None:
                raise ValueError(f"Error leyendo {label}")
            values.append(line)

    ip_gotham, port_gotham, ip_fleck, port_fleck, worker_dir, worker_type = values
    return WorkerConfig(
        ip_gotham=strip_line_end(ip_gotham),
        port_gotham=_to_int(port_gotham),
        ip_fleck=strip_line_end(ip_fleck),
        port_fleck=_to_int(port_fleck),
        worker_dir=strip_line_end(worker_dir),
        worker_type=strip_line_end(worker_type),
    )


def _read_reply(sock: socket.socket) -> bytes:
    buffer = bytearray()
    while len(buffer) < FRAME_SIZE:
        chunk = sock.recv(FRAME_SIZE - len(buffer))
        if not chunk:
            break
        buffer += chunk
    return bytes(buffer)


def connect_to_gotham(config: WorkerConfig) -> tuple[socket.socket, bool]:
    """Register this Worker with Gotham.

    Returns the open socket and whether Gotham made this Worker the principal
    of its type. Raises ``OSError`` when the address is invalid or the
    connection fails, and ``ConnectionError`` when Gotham rejects the Worker.
    """
    print("Reading configuration file")
    if config.worker_type == TEXT:
        print("Connecting Enigma worker to the system..")
    if config.worker_type == MEDIA:
        print("Connecting Harley worker to the system..")

    socket.inet_pton(socket.AF_INET, config.ip_gotham)
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((config.ip_gotham, config.port_gotham))
        send_frame(
            sock,
            FrameType.CONNECT_WORKER_GOTHAM,
            f"{config.worker_type}&{config.ip_fleck}&{config.port_fleck}",
        )
        reply = _read_reply(sock)
    except OSError:
        print("Error al conectar con Gotham")
        sock.close()
        raise

    reply_type = reply[0] if reply else None
    if reply_type == FrameType.CONNECT_WORKER_GOTHAM:
        print("Connected to Mr. J System as SECONDARY Worker, ready to be a PRINCIPAL Worker")
        return sock, False
    if reply_type == FrameType.PRINCIPAL_WORKER:
        print("Connected to Mr. J System as PRINCIPAL Worker, ready to listen to Fleck petitions")
        return sock, True

    print("Conexión rechazada por Gotham.")
    sock.close()
    raise ConnectionError("Gotham rejected the worker")


def answer_gotham(sock: socket.socket) -> bool:
    """Answer Gotham's heartbeats until this Worker is made principal.

    Returns ``True`` when a principal assignment arrives and ``False`` when
    the connection ends or an invalid frame is received.
    """
    while True:
        try:
            frame = recv_frame(sock)
        except FrameError as error:
            print(f"Error leyendo trama: {error}")
            return False
        except OSError as error:
            print(f"Error leyendo mensaje de Gotham: {error}", file=sys.stderr)
            sock.close()
            return False

        if frame is None:
            print("Gotham ha cerrado la conexión.")
            return False

        if frame.type == FrameType.HEARTBEAT:
            try:
                send_frame(sock, FrameType.HEARTBEAT)
            except OSError as error:
                print(f"Error enviando respuesta al cliente: {error}", file=sys.stderr)
                sock.close()
                return False
        elif frame.type == FrameType.PRINCIPAL_WORKER:
            print("Somos principal")
            return True


def disconnect_from_gotham(sock: socket.socket, config: WorkerConfig) -> None:
    """Tell Gotham this Worker is leaving, then close the socket.

    Raises ``OSError`` when the disconnection frame cannot be sent.
    """
    try:
        send_frame(sock, FrameType.DISCONNECTION, config.worker_type)
    except OSError:
        print("Error enviando la trama de desconexión a Gotham")
        raise
    sock.close()
    print("Disconnected from Gotham")