"""Tree-sitter parsing for the supported languages."""

from pathlib import Path

import tree_sitter_python as tspython
import tree_sitter_typescript as tstypescript
from loguru import logger
from tree_sitter import Language as TSLanguage
from tree_sitter import Node, Parser, Query, QueryCursor, Tree

from chunkloom.core.types.common import Language

QueryMatch = tuple[int, dict[str, list[Node]]]

_GRAMMAR_LOADERS = {
    "python": tspython.language,
    "typescript": tstypescript.language_typescript,
    "tsx": tstypescript.language_tsx,
}


class TreeSitterParser:
    """Parses TypeScript and Python sources and runs structural queries.

    Grammars, parsers and compiled queries are created lazily and cached per
    grammar. TypeScript files ending in ``.tsx`` use the tsx grammar, which
    accepts JSX expressions the plain grammar rejects.
    """

    def __init__(self) -> None:
        self._languages: dict[str, TSLanguage] = {}
        self._parsers: dict[str, Parser] = {}
        self._queries: dict[tuple[str, str], Query] = {}

    def detect_language(self, file_path: str | Path) -> Language | None:
        return Language.from_file_extension(file_path)

    def is_supported(self, file_path: str | Path) -> bool:
        return self.detect_language(file_path) is not None

    def parse(
        self,
        content: str | bytes,
        language: Language,
        file_path: str | Path | None = None,
    ) -> Tree:
        """Parse source text into a syntax tree.

        Raises:
            ValueError: If the language has no grammar
        """
        source = content.encode("utf-8") if isinstance(content, str) else content
        parser = self._get_parser(self._grammar_key(language, file_path))
        return parser.parse(source)

    def query(
        self,
        tree: Tree,
        language: Language,
        source: str,
        file_path: str | Path | None = None,
    ) -> list[QueryMatch]:
        """Run a query against the tree root and return its matches.

        Each match is ``(pattern_index, {capture_name: [nodes]})``.

        Raises:
            tree_sitter.QueryError: If the query does not compile for the grammar
        """
        key = self._grammar_key(language, file_path)
        compiled = self._queries.get((key, source))
        if compiled is None:
            compiled = Query(self._get_language(key), source)
            self._queries[(key, source)] = compiled
        cursor = QueryCursor(compiled)
        return cursor.matches(tree.root_node)

    def _grammar_key(
        self, language: Language, file_path: str | Path | None = None
    ) -> str:
        if language == Language.PYTHON:
            return "python"
        if language == Language.TYPESCRIPT:
            if file_path is not None and Path(file_path).suffix.lower() == ".tsx":
                return "tsx"
            return "typescript"
        raise ValueError(f"Unsupported language: {language}")

    def _get_language(self, key: str) -> TSLanguage:
        language = self._languages.get(key)
        if language is None:
            language = TSLanguage(_GRAMMAR_LOADERS[key]())
            self._languages[key] = language
            logger.debug(f"Loaded tree-sitter grammar: {key}")
        return language

    def _get_parser(self, key: str) -> Parser:
        parser = self._parsers.get(key)
        if parser is None:
            parser = Parser(self._get_language(key))
            self._parsers[key] = parser
        return parser
