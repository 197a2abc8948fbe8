"""Build macOS sandbox profiles and run commands under sandbox-exec."""

__version__ = "0.1.0"
__all__ = ["sbpl", "cli"]