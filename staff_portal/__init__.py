"""Staff portal backend: staff and admin sessions, per-user notes, and a secure form relay."""

__version__ = "1.0.0"
