"""Trading session guard: step-up session lifecycle and read-only mode."""

__version__ = "0.1.0"
