"""Enigma and Harley Worker processes: stay registered with Gotham and serve Flecks."""

from __future__ import annotations

import socket
import sys
import threading

from .connections import MAX_CONNECTIONS, Server
from .worker_client import (
    WorkerConfig,
    answer_gotham,
    connect_to_gotham,
    disconnect_from_gotham,
    read_config,
)

FLECK_READ_SIZE = 256
ACCEPT_REPLY = bytes([0x01, 0x00, 0x00])
REJECT_REPLY = bytes([0x01, 0x00, 0x07]) + b"CON_KO"
_CONNECT_TYPE = 0x01


def handle_fleck_connection(sock: socket.socket) -> list[bytes]:
    """Greet a Fleck and log what it sends until it disconnects.

    The first message is accepted when its first byte is 0x01 and rejected
    otherwise. Returns the messages received after that first one. The
    socket is closed in every case.
    """
    messages: list[bytes] = []
    try:
        try:
            first = sock.recv(FLECK_READ_SIZE - 1)
        except OSError as error:
            print(f"Error al leer datos del Fleck: {error}", file=sys.stderr)
            return messages
        if not first:
            print("Error al leer datos del Fleck", file=sys.stderr)
            return messages

        try:
            if first[0] == _CONNECT_TYPE:
                sock.sendall(ACCEPT_REPLY)
                print("Conexión de Fleck aceptada.")
            else:
                sock.sendall(REJECT_REPLY)
                print("Conexión de Fleck rechazada.")
        except OSError as error:
            print(f"Error respondiendo al Fleck: {error}", file=sys.stderr)
            return messages

        while True:
            try:
                chunk = sock.recv(FLECK_READ_SIZE)
            except OSError:
                break
            if not chunk:
                break
            messages.append(chunk)
            print(f"Mensaje recibido de Fleck: {chunk.decode('utf-8', errors='replace')}")

        print("Fleck desconectado.")
        return messages
    finally:
        sock.close()


class WorkerNode:
    """A running Worker: its link with Gotham and its server for Flecks."""

    def __init__(self, config: WorkerConfig, name: str) -> None:
        self.config = config
        self.name = name
        self.gotham_sock: socket.socket | None = None
        self.fleck_server: Server | None = None
        self.serving = threading.Event()
        self._stopping = threading.Event()
        self._lock = threading.Lock()
        self._connections: list[socket.socket] = []
        self._threads: list[threading.Thread] = []

    def run(self) -> bool:
        """Register with Gotham, wait to become principal, then serve Flecks.

        Returns ``True`` after serving until shutdown and ``False`` when Gotham
        went away before this Worker became principal. Raises ``OSError`` or
        ``ConnectionError`` when Gotham cannot be reached or rejects the Worker.
        """
        sock, principal = connect_to_gotham(self.config)
        self.gotham_sock = sock

        if not principal:
            if not answer_gotham(sock):
                self.shutdown()
                return False
            print("Principal Worker desconectado, ahora nosotros somos Principal.")
        if self._stopping.is_set():
            return False

        heartbeat = threading.Thread(target=self._keep_answering, args=(sock,), daemon=True)
        heartbeat.start()

        server = Server(self.config.ip_fleck, self.config.port_fleck, MAX_CONNECTIONS)
        server.start()
        self.fleck_server = server
        if self._stopping.is_set():
            server.close()
            return True
        self.serving.set()

        while not self._stopping.is_set():
            print("Esperando conexiones de Flecks...")
            try:
                connection = server.accept()
            except OSError:
                if self._stopping.is_set() or server.closed:
                    break
                continue
            if self._stopping.is_set():
                connection.close()
                break
            thread = threading.Thread(target=self._serve_fleck, args=(connection,), daemon=True)
            with self._lock:
                self._connections.append(connection)
                self._threads = [t for t in self._threads if t.is_alive()]
                self._threads.append(thread)
            thread.start()
        return True

    def _keep_answering(self, sock: socket.socket) -> None:
        while answer_gotham(sock):
            pass
        if not self._stopping.is_set():
            self.shutdown()

    def _serve_fleck(self, connection: socket.socket) -> None:
        try:
            handle_fleck_connection(connection)
        finally:
            with self._lock:
                if connection in self._connections:
                    self._connections.remove(connection)

    def shutdown(self) -> None:
        """Leave Gotham, stop the Fleck server and end every Fleck connection."""
        if self._stopping.is_set():
            return
        self._stopping.set()
        print("\nCerrando programa de manera segura...")

        if self.gotham_sock is not None:
            try:
                disconnect_from_gotham(self.gotham_sock, self.config)
            except OSError:
                self.gotham_sock.close()

        server = self.fleck_server
        if server is not None and not server.closed:
            _wake(server)
            server.close()

        with self._lock:
            connections = list(self._connections)
            threads = list(self._threads)
            self._threads.clear()
        for connection in connections:
            try:
                connection.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        for thread in threads:
            if thread is not threading.current_thread():
                thread.join(timeout=1)


def _wake(server: Server) -> None:
    """Connect to the server once so that a blocked accept returns."""
    host = server.host if server.host not in ("", "0.0.0.0") else "127.0.0.1"
    try:
        socket.create_connection((host, server.port), timeout=1).close()
    except OSError:
        pass


def _main(argv: list[str] | None, name: str, program: str) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print(f"Uso: ./{program} <archivo_config>")
        return -1

    try:
        config = read_config(args[0])
    except (OSError, ValueError) as error:
        print(f"Error al leer la configuración: {error}")
        return -1

    print(f"\nWorker Config {name}:")
    print(config.describe(), end="")

    node = WorkerNode(config, name)
    try:
        node.run()
    except KeyboardInterrupt:
        node.shutdown()
        return 0
    except OSError as error:
        print(f"Error al conectar {name} con Gotham: {error}")
        return -1
    return 0


def main_enigma(argv: list[str] | None = None) -> int:
    """Run an Enigma (text) Worker with the configuration file named on the command line."""
    return _main(argv, "Enigma", "enigma")


def main_harley(argv: list[str] | None = None) -> int:
    """Run a Harley (media) Worker with the configuration file named on the command line."""
    return _main(argv, "Harley", "harley")