"""Desktop tray shell for a web music player."""

__version__ = '1.0.0'
