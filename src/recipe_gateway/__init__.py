"""Recipe Gateway: a hardened front door for recipe translation requests."""

__version__ = "0.1.0"
