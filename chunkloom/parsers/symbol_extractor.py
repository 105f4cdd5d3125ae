"""Symbol extraction from tree-sitter syntax trees.

Runs the per-language queries one kind at a time and turns each declaration
node into an ExtractedSymbol. Only top-level and class-nested declarations are
kept; anything declared inside a function body is skipped.
"""

import inspect
import re
from pathlib import Path

from loguru import logger
from tree_sitter import Node, Tree

from chunkloom.core.models import ExtractedSymbol
from chunkloom.core.types.common import ChunkType, Language, Visibility
from chunkloom.parsers.queries import DECLARATION_CAPTURES, get_queries
from chunkloom.parsers.tree_sitter_parser import TreeSitterParser

_CLASS_NODES = frozenset(
    {"class_declaration", "abstract_class_declaration", "class_definition", "class"}
)

_FUNCTION_NODES = frozenset(
    {
        "function_definition",
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "arrow_function",
        "method_definition",
        "lambda",
    }
)

_IDENTIFIER_NODES = frozenset(
    {"identifier", "type_identifier", "property_identifier", "private_property_identifier"}
)

# Nodes that wrap a declaration without changing what it declares
_WRAPPER_NODES = frozenset({"decorated_definition", "export_statement"})

_STRING_LITERAL = re.compile(r"^[rRuUbBfF]*(\"\"\"|'''|\"|')(.*)\1$", re.DOTALL)
_JSDOC_LINE_PREFIX = re.compile(r"^\s*\*\s?")


def _clean_python_docstring(text: str) -> str | None:
    match = _STRING_LITERAL.match(text.strip())
    inner = match.group(2) if match else text
    cleaned = inspect.cleandoc(inner)
    return cleaned or None


def _clean_jsdoc(text: str) -> str | None:
    body = text[3:]
    if body.endswith("*/"):
        body = body[:-2]
    lines = [_JSDOC_LINE_PREFIX.sub("", line) for line in body.splitlines()]
    cleaned = "\n".join(lines).strip()
    return cleaned or None


class SymbolExtractor:
    """Extracts functions, classes, methods, interfaces and type aliases."""

    def __init__(self, parser: TreeSitterParser):
        self._parser = parser

    def extract(
        self,
        tree: Tree,
        content: str,
        language: Language,
        file_path: str | Path | None = None,
    ) -> list[ExtractedSymbol]:
        """Extract symbols from a parsed file.

        Args:
            tree: Tree produced by ``TreeSitterParser.parse`` for ``content``
            content: Source text the tree was parsed from
            language: Language of the source
            file_path: Used to select the tsx grammar for ``.tsx`` files

        Returns:
            Symbols in source order, without duplicates
        """
        source = content.encode("utf-8")
        symbols: list[ExtractedSymbol] = []
        seen: set[tuple[int, int, ChunkType, str]] = set()

        for kind, query_source in get_queries(language).items():
            try:
                matches = self._parser.query(tree, language, query_source, file_path)
                for _, captures in matches:
                    extracted = self._symbol_from_match(captures, kind, source, language)
                    if extracted is None:
                        continue
                    node, symbol = extracted
                    key = (node.start_byte, node.end_byte, symbol.kind, symbol.name)
                    if key in seen:
                        continue
                    seen.add(key)
                    symbols.append(symbol)
            except Exception as e:
                logger.warning(
                    f"Symbol query for {kind.value} failed ({language.value}): {e}"
                )

        symbols.sort(key=lambda s: (s.start_line, s.start_column, s.end_line))
        return symbols

    def _symbol_from_match(
        self,
        captures: dict[str, list[Node]],
        kind: ChunkType,
        source: bytes,
        language: Language,
    ) -> tuple[Node, ExtractedSymbol] | None:
        node = None
        for capture_name, nodes in captures.items():
            if capture_name in DECLARATION_CAPTURES and nodes:
                node = nodes[0]
                break
        if node is None:
            return None

        if node.type == "decorated_definition":
            node = node.child_by_field_name("definition")
            if node is None:
                return None

        span = self._span_node(node)
        if self._is_inside_function(span):
            return None

        name_nodes = captures.get("name")
        if name_nodes:
            name = self._node_text(name_nodes[0], source).strip()
        else:
            name = self._extract_name(node, source)
        if not name:
            return None

        parent_symbol = self._enclosing_class_name(span, source)
        if kind == ChunkType.METHOD and parent_symbol is None:
            # Methods of object literals and anonymous classes
            return None
        if language == Language.PYTHON and kind == ChunkType.FUNCTION and parent_symbol:
            kind = ChunkType.METHOD

        body = self._body_node(node)
        start_line = span.start_point[0] + 1

        symbol = ExtractedSymbol(
            name=name,
            kind=kind,
            signature=self._extract_signature(node, span, body, source),
            docstring=self._extract_docstring(node, span, source, language),
            start_line=start_line,
            end_line=span.end_point[0] + 1,
            start_column=span.start_point[1],
            end_column=span.end_point[1],
            body_start_line=body.start_point[0] + 1 if body is not None else start_line,
            decorators=self._extract_decorators(node, span, source),
            visibility=self._extract_visibility(node, name, source),
            parent_symbol=parent_symbol,
        )
        return node, symbol

    def _span_node(self, node: Node) -> Node:
        parent = node.parent
        if parent is not None and parent.type in _WRAPPER_NODES:
            return parent
        return node

    def _is_inside_function(self, node: Node) -> bool:
        parent = node.parent
        while parent is not None:
            if parent.type in _FUNCTION_NODES:
                return True
            parent = parent.parent
        return False

    def _node_text(self, node: Node, source: bytes) -> str:
        return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def _extract_name(self, node: Node, source: bytes) -> str | None:
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            return self._node_text(name_node, source)
        for child in node.children:
            if child.type in _IDENTIFIER_NODES:
                return self._node_text(child, source)
        return None

    def _body_node(self, node: Node) -> Node | None:
        body = node.child_by_field_name("body")
        if body is not None:
            return body
        if node.type == "lexical_declaration":
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                value = declarator.child_by_field_name("value")
                if value is not None and value.type == "arrow_function":
                    return value.child_by_field_name("body")
        return None

    def _extract_signature(
        self, node: Node, span: Node, body: Node | None, source: bytes
    ) -> str:
        """Declaration text up to the body, or the whole text without one."""
        start = span.start_byte if span.type == "export_statement" else node.start_byte
        for child in node.children:
            if child.type != "decorator":
                break
            start = max(start, child.end_byte)

        end = body.start_byte if body is not None else span.end_byte
        signature = source[start:end].decode("utf-8", errors="replace")
        return signature.strip()

    def _extract_docstring(
        self, node: Node, span: Node, source: bytes, language: Language
    ) -> str | None:
        if language == Language.PYTHON:
            return self._python_docstring(node, source)
        return self._jsdoc(node, span, source)

    def _python_docstring(self, node: Node, source: bytes) -> str | None:
        body = node.child_by_field_name("body")
        if body is None:
            return None
        statements = [c for c in body.named_children if c.type != "comment"]
        if not statements or statements[0].type != "expression_statement":
            return None
        expression = statements[0].named_children
        if not expression or expression[0].type != "string":
            return None
        return _clean_python_docstring(self._node_text(expression[0], source))

    def _jsdoc(self, node: Node, span: Node, source: bytes) -> str | None:
        # The comment sits before the export wrapper when there is one
        for candidate in (node, span):
            previous = candidate.prev_named_sibling
            if previous is None or previous.type != "comment":
                continue
            text = self._node_text(previous, source)
            if text.startswith("/**") and previous.end_point[0] >= candidate.start_point[0] - 1:
                return _clean_jsdoc(text)
        return None

    def _extract_decorators(self, node: Node, span: Node, source: bytes) -> tuple[str, ...]:
        holders = [span, node] if span is not node else [node]
        decorators = []
        for holder in holders:
            for child in holder.children:
                if child.type == "decorator":
                    decorators.append(self._node_text(child, source).strip())
        return tuple(decorators)

    def _extract_visibility(self, node: Node, name: str, source: bytes) -> Visibility:
        for child in node.children:
            if child.type == "accessibility_modifier":
                modifier = self._node_text(child, source).strip()
                if modifier == "private":
                    return Visibility.PRIVATE
                if modifier == "protected":
                    return Visibility.PROTECTED
                return Visibility.PUBLIC

        if name.startswith("#"):
            return Visibility.PRIVATE
        if name.startswith("__") and name.endswith("__"):
            return Visibility.PUBLIC
        if name.startswith("__"):
            return Visibility.PRIVATE
        if name.startswith("_"):
            return Visibility.PROTECTED
        return Visibility.PUBLIC

    def _enclosing_class_name(self, node: Node, source: bytes) -> str | None:
        parent = node.parent
        while parent is not None:
            if parent.type in _CLASS_NODES:
                name_node = parent.child_by_field_name("name")
                if name_node is None:
                    return None
                return self._node_text(name_node, source)
            parent = parent.parent
        return None
