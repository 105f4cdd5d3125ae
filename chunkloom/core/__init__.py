"""Core models, types and configuration for chunkloom."""
