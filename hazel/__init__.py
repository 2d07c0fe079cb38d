"""hazel: a tool-augmented chat agent for the terminal."""

__version__ = "0.1.0"
