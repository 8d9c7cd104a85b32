"""Cortex: incremental semantic index of a workspace."""

__version__ = "0.1.0"
