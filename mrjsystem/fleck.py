"""Fleck: the user client that talks to Gotham and sends files to Workers."""

from __future__ import annotations

import re
import socket
import sys
import threading
from dataclasses import dataclass
from os import PathLike
from typing import IO, Iterable

from .common import MEDIA, TEXT, file_type, list_files, read_until, remove_ampersand, strip_line_end
from .connections import recv_frame, send_frame
from .fleck_distort import (
    DistortJob,
    parse_worker_info,
    receive_distort_reply,
    run_distort,
    send_distort_request,
)
from .frames import FrameError, FrameType

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_MEDIA_LIST_EXTENSIONS = (".wav", ".jpg", ".png")
_TEXT_LIST_EXTENSIONS = (".txt",)


def _to_int(text: str) -> int:
    """Parse the leading integer of ``text``; 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


@dataclass
class FleckConfig:
    """The user's name and directory, and where Gotham listens for Flecks."""

    username: str
    user_dir: str
    gotham_ip: str
    gotham_port: int


def read_config(path: str | PathLike[str]) -> FleckConfig:
    """Read a four-line Fleck configuration file.

    The lines hold the user name (with any ``&`` removed), the user
    directory, the Gotham IP and the Gotham port. Raises ``OSError`` when the
    file cannot be opened and ``ValueError`` when a line is missing.
    """
    labels = (
        "el nombre de usuario",
        "el directorio del usuario",
        "la IP de Gotham",
        "el puerto de Gotham",
    )
    values = []
    with open(path, "rb") as stream:
        for label in labels:
            line = read_until(stream, "\n")
            if line is None:
                raise ValueError(f"Error leyendo {label}")
            values.append(line)

    username, user_dir, gotham_ip, gotham_port = values
    return FleckConfig(
        username=remove_ampersand(username),
        user_dir=user_dir,
        gotham_ip=gotham_ip,
        gotham_port=_to_int(gotham_port),
    )


def connect_to_gotham(config: FleckConfig) -> socket.socket:
    """Open a connection to Gotham and introduce this user.

    Returns the open socket once Gotham accepts. Raises ``OSError`` when the
    address is invalid or the connection fails, ``FrameError`` on an invalid
    answer and ``ConnectionError`` when Gotham answers with anything else.
    """
    print("Iniciando conexión de Fleck con Gotham...")
    config.gotham_ip = strip_line_end(config.gotham_ip)
    socket.inet_pton(socket.AF_INET, config.gotham_ip)

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect((config.gotham_ip, config.gotham_port))
        print("Conexión establecida con Gotham, enviando datos...")
        config.username = strip_line_end(config.username)
        send_frame(
            sock,
            FrameType.CONNECT_FLECK_GOTHAM,
            f"{config.username}&{config.gotham_ip}&{config.gotham_port}",
        )
        reply = recv_frame(sock)
    except (OSError, FrameError):
        sock.close()
        raise

    if reply is None:
        sock.close()
        raise ConnectionError("Gotham closed the connection")
    if reply.type == FrameType.CONNECT_FLECK_GOTHAM:
        print("Conexión aceptada por Gotham.")
        return sock

    print(f"Respuesta desconocida de Gotham: , DATA={reply.data}")
    sock.close()
    raise ConnectionError("unexpected answer from Gotham")


class FleckShell:
    """The interactive command loop of Fleck."""

    files_base = "users"

    def __init__(self, config: FleckConfig, output: IO[str] | None = None) -> None:
        self.config = config
        self.output = sys.stdout if output is None else output
        self.gotham: socket.socket | None = None
        self._lock = threading.Lock()
        self._workers: dict[str, DistortJob | None] = {MEDIA: None, TEXT: None}

    @property
    def connected(self) -> bool:
        return self.gotham is not None

    def _write(self, text: str) -> None:
        self.output.write(text)

    def handle_command(self, line: str) -> bool:
        """Run one command line; returns ``False`` once the user logs out."""
        tokens = line.split()
        if not tokens:
            return True
        command, args = tokens[0].lower(), tokens[1:]

        if command == "connect":
            self._connect(args)
        elif command == "list":
            self._list(args)
        elif command == "distort":
            self._distort(args)
        elif command == "check":
            self._keyword_command(args, "status")
        elif command == "clear":
            self._keyword_command(args, "all")
        elif command == "logout":
            if args:
                self._write("Unknown command\n")
                return True
            self._logout()
            return False
        else:
            self._write("Unknown command\n")
        return True

    def run(self, lines: Iterable[str]) -> None:
        """Prompt for and run each line until the input ends or the user logs out."""
        self._write("\n$ ")
        self.output.flush()
        for line in lines:
            if not self.handle_command(line):
                return
            self._write("\n$ ")
            self.output.flush()

    def _connect(self, args: list[str]) -> None:
        if args:
            self._write("Unknown command\n")
            return
        self._write("Command OK\n")
        if self.gotham is not None:
            self._write("Ya estás conectado a Gotham.\n")
            return
        try:
            self.gotham = connect_to_gotham(self.config)
        except (OSError, ValueError) as error:
            print(f"Error: {error}", file=sys.stderr)
            self._write("Error al conectar Fleck con Gotham.\n")
            return
        self._write("Conexión establecida con Gotham.\n")

    def _list(self, args: list[str]) -> None:
        kind = args[0].lower() if args else None
        if kind not in ("media", "text"):
            self._write("Command KO\n")
            self._write("Uso: list <media|text>\n")
            return
        if len(args) > 1:
            self._write("Unknown command\n")
            return

        if kind == "media":
            self._write(f"Listando archivos multimedia en el directorio {self.config.user_dir}:\n")
            extensions = _MEDIA_LIST_EXTENSIONS
        else:
            self._write(f"Listando archivos de texto en el directorio {self.config.user_dir}:\n")
            extensions = _TEXT_LIST_EXTENSIONS

        for extension in extensions:
            try:
                names = list_files(self.config.user_dir, extension, self.files_base)
            except OSError as error:
                print(f"Error abriendo el directorio: {error}", file=sys.stderr)
                continue
            for name in names:
                self._write(f"{name}\n")

    def _keyword_command(self, args: list[str], keyword: str) -> None:
        if not args or args[0].lower() != keyword:
            self._write("Command KO\n")
        elif len(args) > 1:
            self._write("Unknown command\n")
        else:
            self._write("Command OK\n")

    def _distort(self, args: list[str]) -> None:
        if self.gotham is None:
            self._write("No estás conectado a Gotham. Usa el comando 'connect' primero.\n")
            return
        if len(args) != 2:
            self._write("Commando Incorrecto.\n")
            self._write("Uso: distort <filename> <factor>\n")
            return

        filename, factor = args
        self._write("Command OK\n")

        media_type = file_type(filename)
        if media_type is None:
            self._write("Cancelando: Media type no reconocido.\n")
            return
        with self._lock:
            if self._workers[media_type] is not None:
                self._write(f"Cancelando: Ya hay una distorsión '{media_type}' en curso.\n")
                return

        try:
            send_distort_request(self.gotham, filename, media_type)
        except OSError:
            return
        reply = receive_distort_reply(self.gotham)
        if reply is None:
            print("Error leyendo trama.", file=sys.stderr)
            return

        if reply.type != FrameType.DISTORT_FLECK_GOTHAM:
            print("Error: El mensaje recibido de Gotham es inesperado.", file=sys.stderr)
            return
        if reply.data == "DISTORT_KO":
            self._write(f"No hay Workers de {media_type} disponibles.\n")
            return
        if reply.data == "MEDIA_KO":
            self._write(f"Media type '{media_type}' no reconocido.\n")
            return

        try:
            worker = parse_worker_info(reply.data, media_type)
        except ValueError as error:
            print(f"Error al guardar el WorkerFleck: {error}", file=sys.stderr)
            return

        def release() -> None:
            with self._lock:
                self._workers[media_type] = None

        job = DistortJob(self.config.username, filename, factor, worker, on_done=release)
        with self._lock:
            self._workers[media_type] = job
        threading.Thread(target=_run_job, args=(job,), daemon=True).start()

    def _logout(self) -> None:
        if self.gotham is None:
            self._write("No estás conectado a Gotham.\n")
            return
        try:
            send_frame(self.gotham, FrameType.DISCONNECTION, "LOGOUT")
        except OSError as error:
            print(f"Error enviando comando de logout a Gotham: {error}", file=sys.stderr)
        else:
            self._write("Desconexión solicitada a Gotham.\n")
        self.gotham.close()
        self.gotham = None


def _run_job(job: DistortJob) -> None:
    try:
        run_distort(job)
    except (OSError, ValueError) as error:
        print(f"Error en la distorsión: {error}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Run Fleck with the configuration file named on the command line."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("Uso: ./fleck <archivo_config>")
        return -1

    try:
        config = read_config(args[0])
    except (OSError, ValueError) as error:
        print(f"Error al leer la configuración: {error}", file=sys.stderr)
        return -1

    print("\nFleck:")
    print(f"Nombre de usuario: {config.username}")
    print(f"Directorio de usuario: {config.user_dir}")
    print(f"Dirección IP de Gotham: {config.gotham_ip}")
    print(f"Puerto de Gotham: {config.gotham_port}")

    try:
        FleckShell(config).run(sys.stdin)
        sock = connect_to_gotham(config)
    except KeyboardInterrupt:
        print("\nSaliendo del programa...")
        return 0
    except (OSError, ValueError):
        print("Error al conectar Fleck con Gotham.")
        return -1
    sock.close()
    return 0