"""Configuration of the Gotham coordinator."""

from __future__ import annotations

import re
from dataclasses import dataclass
from os import PathLike

from .common import read_until

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _to_int(text: str) -> int:
    """Parse the leading integer of ``text``; 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


@dataclass
class GothamConfig:
    """Addresses on which Gotham listens for Flecks and for Workers."""

    ip_fleck: str
    port_fleck: int
    ip_workers: str
    port_workers: int

    def describe(self) -> str:
        """Return the configuration as the text shown at start-up."""
        return (
            "Gotham Config:\n"
            f"IP Fleck: {self.ip_fleck}\n"
            f"Puerto Fleck: {self.port_fleck}\n"
            f"IP Workers (Harley/Enigma): {self.ip_workers}\n"
            f"Puerto Workers (Harley/Enigma): {self.port_workers}\n\n"
        )


def read_config(path: str | PathLike[str]) -> GothamConfig:
    """Read a four-line Gotham configuration file.

    The lines hold the Fleck IP, the Fleck port, the Worker IP and the
    Worker port. Raises ``OSError`` when the file cannot be opened and
    ``ValueError`` when a line is missing.
    """
    labels = (
        "la IP de Fleck",
        "el puerto de Fleck",
        "la IP de Harley/Enigma",
        "el puerto de Harley/Enigma",
    )
    values = []
    with open(path, "rb") as stream:
        for label in labels:
            line = read_until(stream, "\n")
            if line is None:
                raise ValueError(f"Error leyendo {label}")
            values.append(line)

    ip_fleck, port_fleck, ip_workers, port_workers = values
    return GothamConfig(
        ip_fleck=ip_fleck,
        port_fleck=_to_int(port_fleck),
        ip_workers=ip_workers,
        port_workers=_to_int(port_workers),
    )