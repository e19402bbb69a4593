"""Shared infrastructure: errors and logging."""
