"""Shared utilities: logging and credential helpers."""
