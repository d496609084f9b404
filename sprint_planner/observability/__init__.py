"""Logging and metrics for the planning service."""
