"""Draft generation and editorial planning."""
