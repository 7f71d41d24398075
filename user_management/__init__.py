"""Account registration, login, and administration service."""

__version__ = "0.1.0"
