"""Command-line interface for Stitch."""
