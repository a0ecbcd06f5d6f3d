"""Structured logging and timing."""
