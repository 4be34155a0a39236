"""Stream and value helpers."""
