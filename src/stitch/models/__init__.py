"""Pydantic models for configuration, services and deployments."""
