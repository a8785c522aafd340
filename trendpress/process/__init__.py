"""Snapshot clustering and cluster scoring."""
