"""Approximate nearest-neighbour search over stored embeddings."""
