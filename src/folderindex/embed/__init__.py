"""Embedding jobs, progress tracking and document preparation."""
