"""The Gotham coordinator: accepts Flecks and Workers and pairs them up."""

from __future__ import annotations

import socket
import sys
import threading
from os import PathLike

from .common import MEDIA, TEXT
from .connections import HEARTBEAT_SLEEP_TIME, MAX_CONNECTIONS, Server, recv_frame, send_frame, send_heartbeats
from .frames import Frame, FrameError, FrameType
from .gotham_config import GothamConfig, read_config
from .gotham_registry import RegistryFull, WorkerRegistry

_WORKER_NAMES = {MEDIA: "Harley", TEXT: "Enigma"}


class Gotham:
    """Coordinator state: the listening servers, the Worker registry and the Fleck sockets."""

    def __init__(self, config: GothamConfig) -> None:
        self.config = config
        self.registry = WorkerRegistry()
        self.heartbeat_interval: float = HEARTBEAT_SLEEP_TIME
        self.fleck_server: Server | None = None
        self.worker_server: Server | None = None
        self.flecks_ready = threading.Event()
        self.workers_ready = threading.Event()
        self._stopping = threading.Event()
        self._lock = threading.Lock()
        self._fleck_sockets: list[socket.socket] = []
        self._threads: list[threading.Thread] = []

    @property
    def fleck_sockets(self) -> list[socket.socket]:
        """A snapshot of the sockets of the connected Flecks."""
        with self._lock:
            return list(self._fleck_sockets)

    # Fleck side

    def handle_fleck_connection(self, sock: socket.socket) -> None:
        """Serve CONNECT and DISTORT requests from one Fleck until it disconnects."""
        try:
            while True:
                try:
                    frame = recv_frame(sock)
                except FrameError:
                    print("Trama inválida recibida de Fleck.")
                    continue
                except OSError as error:
                    print(f"Error al recibir datos de Fleck: {error}", file=sys.stderr)
                    break

                if frame is None:
                    print("Fleck desconectado.")
                    break

                if frame.type == FrameType.CONNECT_FLECK_GOTHAM:
                    self._answer_connect(sock, frame)
                elif frame.type == FrameType.DISTORT_FLECK_GOTHAM:
                    self._answer_distort(sock, frame)
        finally:
            sock.close()
            with self._lock:
                if sock in self._fleck_sockets:
                    self._fleck_sockets.remove(sock)

    def _answer_connect(self, sock: socket.socket, frame: Frame) -> None:
        print("Comando CONNECT recibido de Fleck.")
        fields = frame.fields()
        if len(fields) >= 3:
            username, ip, port = fields[:3]
            print(f"Usuario conectado: {username}, IP: {ip}, Puerto: {port}")
            _reply(sock, FrameType.CONNECT_FLECK_GOTHAM, "", "OK")
        else:
            _reply(sock, FrameType.CONNECT_FLECK_GOTHAM, "CON_KO", "CON_KO")
            print("Formato de conexión inválido. Respuesta CON_KO enviada.")

    def _answer_distort(self, sock: socket.socket, frame: Frame) -> None:
        print("Comando DISTORT recibido de Fleck.")
        fields = frame.fields()
        media_type = fields[0] if fields else ""

        if media_type not in _WORKER_NAMES:
            _reply(sock, FrameType.DISTORT_FLECK_GOTHAM, "MEDIA_KO", "MEDIA_KO")
            print(
                f"Media type '{media_type}' no reconocido. "
                "Respuesta de MEDIA_KO enviada a Fleck."
            )
            return

        worker = self.registry.principal(media_type)
        if worker is None:
            _reply(sock, FrameType.DISTORT_FLECK_GOTHAM, "DISTORT_KO", "DISTORT_KO")
            print("Sin Workers disponibles. Respuesta de DISTORT_KO enviada a Fleck.")
            return

        if _reply(sock, FrameType.DISTORT_FLECK_GOTHAM, f"{worker.ip}&{worker.port}", "DISTORT"):
            print(f"Worker {_WORKER_NAMES[media_type]} principal enviado a Fleck.")

    # Worker side

    def handle_worker_connection(self, sock: socket.socket) -> None:
        """Register a Worker, tell it whether it is principal, then keep it alive with heartbeats."""
        try:
            frame = recv_frame(sock)
        except (FrameError, OSError) as error:
            print(f"Error con la trama enviada por Worker: {error}", file=sys.stderr)
            sock.close()
            return
        if frame is None:
            print("Error leyendo data de worker", file=sys.stderr)
            sock.close()
            return

        try:
            is_principal = self.registry.add(frame.data, sock)
        except (RegistryFull, ValueError):
            sock.close()
            return

        answer = FrameType.PRINCIPAL_WORKER if is_principal else FrameType.CONNECT_WORKER_GOTHAM
        try:
            send_frame(sock, answer)
        except OSError:
            print("Error enviando la trama de conexión a Gotham")
            self._forget_worker(sock)
            return

        send_heartbeats(sock, self.heartbeat_interval)
        self._forget_worker(sock)

    def _forget_worker(self, sock: socket.socket) -> None:
        try:
            self.registry.remove(sock)
        except KeyError:
            sock.close()

    # Servers

    def serve_flecks(self) -> None:
        """Listen for Flecks and serve each one on its own thread until shutdown."""
        server = Server(self.config.ip_fleck, self.config.port_fleck, MAX_CONNECTIONS)
        server.start()
        self.fleck_server = server
        self.flecks_ready.set()
        print("Esperando conexiones de Flecks...")
        self._accept_loop(server, self.handle_fleck_connection, track=True)

    def serve_workers(self) -> None:
        """Listen for Workers and serve each one on its own thread until shutdown."""
        server = Server(self.config.ip_workers, self.config.port_workers, MAX_CONNECTIONS)
        server.start()
        self.worker_server = server
        self.workers_ready.set()
        print("Esperando conexiones de Workers...")
        self._accept_loop(server, self.handle_worker_connection, track=False)

    def _accept_loop(self, server: Server, handler, track: bool) -> None:
        while not self._stopping.is_set():
            try:
                connection = server.accept()
            except OSError:
                if self._stopping.is_set() or server.closed:
                    return
                print("Error accepting connection.")
                continue
            if track:
                with self._lock:
                    self._fleck_sockets.append(connection)
            thread = threading.Thread(target=handler, args=(connection,), daemon=True)
            thread.start()
            with self._lock:
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)

    def shutdown(self) -> None:
        """Close both servers and every Worker and Fleck connection."""
        print("\n\nCerrando programa de manera segura...")
        self._stopping.set()

        print("Liberando memoria workers...")
        if self.worker_server is not None:
            self.worker_server.close()
        self.registry.close_all()
        print("Memoria de los Workers liberada correctamente.\n")

        print("Liberando memoria flecks...")
        if self.fleck_server is not None:
            self.fleck_server.close()
        with self._lock:
            flecks = list(self._fleck_sockets)
            self._fleck_sockets.clear()
            threads = list(self._threads)
            self._threads.clear()
        for fleck in flecks:
            try:
                fleck.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            fleck.close()
        print("Memoria de los Flecks liberada correctamente.\n")

        for thread in threads:
            if thread is not threading.current_thread():
                thread.join(timeout=1)
        print("Recursos liberados correctamente. Saliendo...")


def _reply(sock: socket.socket, frame_type: FrameType, data: str, label: str) -> bool:
    try:
        send_frame(sock, frame_type, data)
    except OSError as error:
        print(f"Error enviando respuesta {label} a Fleck: {error}", file=sys.stderr)
        return False
    return True


def main(argv: list[str] | None = None) -> int:
    """Run Gotham with the configuration file named on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("Uso: ./gotham <archivo_config>")
        return -1

    path: str | PathLike[str] = args[0]
    try:
        config = read_config(path)
    except (OSError, ValueError) as error:
        print(f"Error al leer la configuración: {error}", file=sys.stderr)
        return -1

    print(config.describe(), end="")
    gotham = Gotham(config)
    servers = [
        threading.Thread(target=gotham.serve_workers, daemon=True),
        threading.Thread(target=gotham.serve_flecks, daemon=True),
    ]
    for thread in servers:
        thread.start()

    try:
        while any(thread.is_alive() for thread in servers):
            for thread in servers:
                thread.join(timeout=0.5)
    except KeyboardInterrupt:
        gotham.shutdown()
    return 0