"""Romance MT: English <-> Romance machine translation inference core."""

__version__ = "0.1.0"
