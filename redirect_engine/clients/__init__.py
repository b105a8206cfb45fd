"""Adapters for external services consulted during a tap."""
