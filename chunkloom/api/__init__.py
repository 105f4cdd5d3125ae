"""User-facing entry points for chunkloom."""
