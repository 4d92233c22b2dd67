"""Ping capture storage, statistics, time formatting and the compact `.pings` file format."""

__version__ = "0.1.0"

__all__ = ["data", "drawbuffer", "files", "gotime", "serialisation"]