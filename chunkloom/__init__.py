"""chunkloom: incremental, hierarchical code indexing with a cancellable job worker."""

__version__ = "0.1.0"
