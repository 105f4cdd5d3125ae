"""Tree-sitter parsing, symbol extraction and hierarchical chunking."""

from .ast_chunker import AstChunker
from .symbol_extractor import SymbolExtractor
from .tree_sitter_parser import TreeSitterParser

__all__ = ["AstChunker", "SymbolExtractor", "TreeSitterParser"]
