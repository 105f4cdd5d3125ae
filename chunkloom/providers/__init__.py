"""Concrete provider adapters for chunkloom."""
