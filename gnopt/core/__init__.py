"""Core optimization components."""
