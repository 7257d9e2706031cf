"""Logging setup for the hub process."""
