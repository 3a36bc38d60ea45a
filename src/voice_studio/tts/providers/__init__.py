"""Synthesis provider implementations."""
