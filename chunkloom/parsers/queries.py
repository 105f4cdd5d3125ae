"""Tree-sitter query patterns for symbol extraction.

Each language maps a symbol kind to one query. Every pattern captures the
declaration node under the kind's own name and its identifier as ``@name``.
Kinds are run one query at a time so a pattern the grammar rejects only loses
that kind.
"""

from chunkloom.core.types.common import ChunkType, Language

TYPESCRIPT_QUERIES: dict[ChunkType, str] = {
    ChunkType.FUNCTION: """
        (function_declaration
            name: (identifier) @name
        ) @function

        (lexical_declaration
            (variable_declarator
                name: (identifier) @name
                value: (arrow_function)
            )
        ) @function
    """,
    ChunkType.CLASS: """
        (class_declaration
            name: (type_identifier) @name
        ) @class

        (abstract_class_declaration
            name: (type_identifier) @name
        ) @class
    """,
    ChunkType.METHOD: """
        (method_definition
            name: (_) @name
        ) @method
    """,
    ChunkType.INTERFACE: """
        (interface_declaration
            name: (type_identifier) @name
        ) @interface
    """,
    ChunkType.TYPE_ALIAS: """
        (type_alias_declaration
            name: (type_identifier) @name
        ) @type_alias
    """,
}

# Decorated definitions are captured separately and resolved to the inner
# definition by the extractor, which then deduplicates by node span.
PYTHON_QUERIES: dict[ChunkType, str] = {
    ChunkType.FUNCTION: """
        (function_definition
            name: (identifier) @name
        ) @function

        (decorated_definition
            definition: (function_definition
                name: (identifier) @name
            )
        ) @decorated_function
    """,
    ChunkType.CLASS: """
        (class_definition
            name: (identifier) @name
        ) @class

        (decorated_definition
            definition: (class_definition
                name: (identifier) @name
            )
        ) @decorated_class
    """,
}

# Capture names that mark a declaration node (as opposed to ``@name``)
DECLARATION_CAPTURES = frozenset(
    {
        "function",
        "class",
        "method",
        "interface",
        "type_alias",
        "decorated_function",
        "decorated_class",
    }
)


def get_queries(language: Language) -> dict[ChunkType, str]:
    """Return the per-kind queries for a language."""
    if language == Language.TYPESCRIPT:
        return TYPESCRIPT_QUERIES
    if language == Language.PYTHON:
        return PYTHON_QUERIES
    raise ValueError(f"No queries defined for language: {language}")
