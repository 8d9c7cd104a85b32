"""Embedding service gateway."""
