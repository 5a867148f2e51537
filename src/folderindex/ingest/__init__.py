"""Chunking strategies, folder walking and snapshot creation."""
