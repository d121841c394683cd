"""Fleck's distortion requests: asking Gotham for a Worker and contacting it."""

from __future__ import annotations

import hashlib
import os
import socket
import sys
from dataclasses import dataclass
from os import PathLike
from typing import Callable

from .connections import recv_frame, send_frame
from .frames import Frame, FrameError, FrameType

READ_FILE_BUFFER_SIZE = 4096


@dataclass
class WorkerInfo:
    """A Worker assigned by Gotham for one distortion."""

    ip: str
    port: str
    worker_type: str
    sock: socket.socket | None = None
    status: int = 0

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None


@dataclass
class DistortJob:
    """One distortion request: who asks, which file, how strongly, and which Worker serves it.

    ``on_done`` is called once the job ends, whether it succeeded or not.
    """

    username: str
    filename: str
    distortion_factor: str
    worker: WorkerInfo
    on_done: Callable[[], None] | None = None


def send_distort_request(sock: socket.socket, filename: str, media_type: str) -> None:
    """Ask Gotham for a Worker able to distort ``filename``.

    Raises ``OSError`` when the request cannot be sent.
    """
    try:
        send_frame(sock, FrameType.DISTORT_FLECK_GOTHAM, f"{media_type}&{filename}")
    except OSError as error:
        print(f"Error enviando solicitud de distorsión a Gotham: {error}", file=sys.stderr)
        raise
    print("Solicitud de distorsión enviada a Gotham.")


def receive_distort_reply(sock: socket.socket) -> Frame | None:
    """Read Gotham's answer to a distortion request.

    Returns ``None`` when the connection ended, which also closes the
    socket, or when the frame is invalid.
    """
    try:
        return recv_frame(sock)
    except FrameError as error:
        print(f"Error: {error}")
        return None
    except OSError as error:
        print(f"Error leyendo mensaje de Gotham: {error}", file=sys.stderr)
        sock.close()
        return None
    finally:
        pass


def _receive_or_close(sock: socket.socket) -> Frame | None:
    frame = receive_distort_reply(sock)
    return frame


def parse_worker_info(data: str, worker_type: str) -> WorkerInfo:
    """Build a ``WorkerInfo`` from Gotham's ``<IP>&<port>`` answer.

    Raises ``ValueError`` when a field is missing.
    """
    fields = [piece for piece in data.split("&") if piece]
    if len(fields) < 2 or not worker_type:
        print("Error: Formato de datos inválido.")
        raise ValueError(f"invalid worker data {data!r}")
    return WorkerInfo(ip=fields[0], port=fields[1], worker_type=worker_type)


def file_size(path: str | PathLike[str]) -> int:
    """Return the size of the file in bytes; raises ``OSError`` when it cannot be read."""
    return os.path.getsize(path)


def md5sum(path: str | PathLike[str]) -> str:
    """Return the hexadecimal MD5 digest of the file; raises ``OSError`` when it cannot be read."""
    digest = hashlib.md5()
    with open(path, "rb") as stream:
        for block in iter(lambda: stream.read(READ_FILE_BUFFER_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def run_distort(job: DistortJob) -> str:
    """Connect to the job's Worker and prepare the distortion request.

    Returns the request text ``<user>&<file>&<size>&<md5>``. The Worker's
    status becomes 100 on success. The connection is closed and
    ``job.on_done`` is called in every case. Raises ``OSError`` or
    ``ValueError`` when the Worker cannot be reached or the file read.
    """
    worker = job.worker
    try:
        print(f"Conectando a Worker en {worker.ip}:{worker.port}...")
        socket.inet_pton(socket.AF_INET, worker.ip)
        worker.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        worker.sock.connect((worker.ip, int(worker.port)))

        size = file_size(job.filename)
        digest = md5sum(job.filename)
        request = f"{job.username}&{job.filename}&{size}&{digest}"
        print(request)

        worker.status = 100
        worker.close()
        print(f"Conexión cerrada con el Worker {worker.ip}:{worker.port}\n$ ", end="")
        return request
    finally:
        worker.close()
        if job.on_done is not None:
            job.on_done()