"""Core infrastructure: configuration, errors, logging and constants."""
