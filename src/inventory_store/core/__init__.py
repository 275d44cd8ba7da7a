"""Application context, settings and logging setup."""
