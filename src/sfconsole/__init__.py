"""sfconsole: discover project console binaries and run their commands in a pty."""

__version__ = "0.1.0"
