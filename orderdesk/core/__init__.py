"""Core runtime helpers (logging, process state)."""
