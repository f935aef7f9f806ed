"""Request adapters for the write endpoint."""
