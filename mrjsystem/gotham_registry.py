"""Registry of the Workers connected to Gotham and of their principals."""

from __future__ import annotations

import socket
import sys
import threading
from dataclasses import dataclass

from .common import MEDIA, TEXT
from .connections import send_frame
from .frames import FrameType

MAX_WORKERS = 10
_PRINCIPAL_TYPES = (TEXT, MEDIA)


@dataclass(eq=False)
class WorkerRecord:
    """A connected Worker: its type, the address Flecks reach it on, and its socket."""

    worker_type: str
    ip: str
    port: str
    sock: socket.socket | None = None

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()


class RegistryFull(RuntimeError):
    """The registry already holds the maximum number of Workers."""


class WorkerRegistry:
    """Thread-safe list of Workers with one principal per Worker type."""

    def __init__(self, max_workers: int = MAX_WORKERS) -> None:
        self.max_workers = max_workers
        self._workers: list[WorkerRecord] = []
        self._principals: dict[str, WorkerRecord] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._workers)

    @property
    def workers(self) -> list[WorkerRecord]:
        """A snapshot of the registered Workers, in arrival order."""
        with self._lock:
            return list(self._workers)

    def add(self, data: str, sock: socket.socket | None) -> bool:
        """Register a Worker from ``<workerType>&<IP>&<Port>`` data.

        Returns ``True`` when the Worker becomes the principal of its type.
        Raises ``RegistryFull`` at the limit and ``ValueError`` on bad data.
        """
        fields = [piece for piece in data.split("&") if piece]
        with self._lock:
            if len(self._workers) >= self.max_workers:
                print("Error: No se pudo agregar el worker. Límite de workers alcanzado.")
                raise RegistryFull(f"limit of {self.max_workers} workers reached")
            if len(fields) < 3:
                print("Error: Formato de datos inválido.")
                raise ValueError(f"invalid worker data {data!r}")

            record = WorkerRecord(fields[0], fields[1], fields[2], sock)
            self._workers.append(record)
            print(
                f"New worker added: workerType={record.worker_type}, "
                f"IP={record.ip}, Port={record.port}"
            )

            if record.worker_type not in _PRINCIPAL_TYPES:
                print("Not known type")
                return False
            if record.worker_type in self._principals:
                return False
            self._principals[record.worker_type] = record
            return True

    def find_by_socket(self, sock: socket.socket) -> WorkerRecord | None:
        """Return the Worker connected through ``sock``, if any."""
        with self._lock:
            return next((w for w in self._workers if w.sock is sock), None)

    def principal(self, worker_type: str) -> WorkerRecord | None:
        """Return the principal Worker of ``worker_type``, if there is one."""
        with self._lock:
            return self._principals.get(worker_type)

    def remove(self, sock: socket.socket) -> WorkerRecord | None:
        """Drop the Worker on ``sock`` and close its socket.

        When it was a principal, the first remaining Worker of the same type
        is promoted and told so; that Worker is returned. Raises ``KeyError``
        when no Worker uses ``sock``.
        """
        with self._lock:
            record = self.find_by_socket(sock)
            if record is None:
                print("Error al buscar Worker mediante su socket.", file=sys.stderr)
                raise KeyError("no worker registered on that socket")

            record.close()
            self._workers.remove(record)

            worker_type = record.worker_type
            if self._principals.get(worker_type) is not record:
                return None
            del self._principals[worker_type]

            for index, candidate in enumerate(self._workers):
                if candidate.worker_type != worker_type:
                    continue
                self._principals[worker_type] = candidate
                try:
                    if candidate.sock is not None:
                        send_frame(candidate.sock, FrameType.PRINCIPAL_WORKER)
                except OSError:
                    print("Error enviando la trama de conexión a Gotham")
                    return candidate
                print(
                    f"Nuevo pworker de tipo '{worker_type}' encontrado en el índice {index}."
                )
                return candidate

            print(
                f"No hay Workers de tipo '{worker_type}' para asignar como Principal Worker."
            )
            return None

    def close_all(self) -> None:
        """Close every Worker socket and empty the registry."""
        with self._lock:
            for record in self._workers:
                record.close()
            self._workers.clear()
            self._principals.clear()