"""Core configuration, error taxonomy and security primitives."""
