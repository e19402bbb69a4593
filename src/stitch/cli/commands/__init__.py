"""Stitch CLI commands."""
