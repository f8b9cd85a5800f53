"""Chainhook webhook receiver."""
