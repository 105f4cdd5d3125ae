"""Command line interface for chunkloom."""
