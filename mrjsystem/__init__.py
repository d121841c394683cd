"""Gotham coordinator, Fleck client and Enigma/Harley workers exchanging fixed-size TCP frames."""

__version__ = "0.1.0"