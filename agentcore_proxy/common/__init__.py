"""Shared models and error types."""
