"""SQLite storage internals."""
