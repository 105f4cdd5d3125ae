"""Hierarchical, symbol-aware chunking.

For every extracted symbol the chunker emits a summary chunk (docstring plus
signature) and one or more implementation chunks covering the body. Bodies
over the token budget are split into overlapping line windows. A file-level
summary chunk listing every signature is placed first.
"""

import re
import uuid
from pathlib import PurePosixPath

from loguru import logger

from chunkloom.core.config.chunking_config import ChunkingConfig
from chunkloom.core.models import CodeChunk, ExtractedSymbol
from chunkloom.core.types.common import ChunkLevel, ChunkType, Language
from chunkloom.parsers.symbol_extractor import SymbolExtractor
from chunkloom.parsers.tree_sitter_parser import TreeSitterParser
from chunkloom.utils.hashing import content_hash

_TS_IMPORT = re.compile(r"from\s+['\"]([^'\"]+)['\"]")
_PY_IMPORT = re.compile(r"^import\s+([\w.]+)")
_PY_FROM_IMPORT = re.compile(r"^from\s+(\S+)\s+import")
_TS_EXPORT = re.compile(
    r"export\s+(?:default\s+)?(?:async\s+)?(?:abstract\s+)?"
    r"(?:const|let|var|function|class|interface|type)\s+(\w+)"
)


def extract_imports(content: str, language: Language) -> list[str]:
    """Module specifiers imported by a file, in first-seen order."""
    imports: list[str] = []
    for line in content.split("\n"):
        if language == Language.TYPESCRIPT:
            match = _TS_IMPORT.search(line)
            if match:
                imports.append(match.group(1))
        elif language == Language.PYTHON:
            for pattern in (_PY_IMPORT, _PY_FROM_IMPORT):
                match = pattern.match(line)
                if match:
                    imports.append(match.group(1))
    return list(dict.fromkeys(imports))


def extract_exports(content: str, language: Language) -> list[str]:
    """Names exported by a TypeScript file. Python files export nothing here."""
    if language != Language.TYPESCRIPT:
        return []
    exports = [m.group(1) for m in _TS_EXPORT.finditer(content)]
    return list(dict.fromkeys(exports))


class AstChunker:
    """Turns a source file into summary and implementation chunks."""

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        parser: TreeSitterParser | None = None,
    ):
        self._config = config or ChunkingConfig()
        self._parser = parser or TreeSitterParser()
        self._extractor = SymbolExtractor(self._parser)

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def chunk_file(
        self,
        file_path: str,
        content: str,
        source_id: str,
        file_hash: str,
        language: Language | None = None,
    ) -> list[CodeChunk]:
        """Chunk one file.

        Args:
            file_path: Path relative to the source root
            content: File text
            source_id: Source the chunks belong to
            file_hash: Fingerprint of the whole file
            language: Overrides detection from the file extension

        Returns:
            The file-summary chunk followed by each symbol's summary and
            implementation chunks. Empty for unsupported files and files
            without symbols.
        """
        language = language or self._parser.detect_language(file_path)
        if language is None:
            logger.debug(f"No grammar for {file_path}, skipping")
            return []

        tree = self._parser.parse(content, language, file_path)
        symbols = self._extractor.extract(tree, content, language, file_path)
        if not symbols:
            return []

        lines = content.split("\n")
        chunks: list[CodeChunk] = []
        for symbol in symbols:
            summary = self._create_summary_chunk(
                symbol, file_path, language, source_id, file_hash
            )
            implementations = self._create_implementation_chunks(
                symbol, file_path, language, source_id, file_hash, lines, summary.id
            )
            summary.child_chunk_ids = [chunk.id for chunk in implementations]
            chunks.append(summary)
            chunks.extend(implementations)

        chunks.insert(
            0,
            self._create_file_summary_chunk(
                symbols, file_path, language, source_id, file_hash, content
            ),
        )
        logger.debug(f"{file_path}: {len(symbols)} symbols, {len(chunks)} chunks")
        return chunks

    def _create_summary_chunk(
        self,
        symbol: ExtractedSymbol,
        file_path: str,
        language: Language,
        source_id: str,
        file_hash: str,
    ) -> CodeChunk:
        if symbol.docstring:
            content = f"{symbol.docstring}\n\n{symbol.signature}"
        else:
            content = symbol.signature

        return CodeChunk(
            id=str(uuid.uuid4()),
            source_id=source_id,
            level=ChunkLevel.SUMMARY,
            chunk_type=symbol.kind,
            language=language,
            content=content,
            signature=symbol.signature,
            symbol_name=symbol.name,
            file_path=file_path,
            start_line=symbol.start_line,
            end_line=symbol.end_line,
            file_hash=file_hash,
            content_hash=content_hash(content),
        )

    def _create_implementation_chunks(
        self,
        symbol: ExtractedSymbol,
        file_path: str,
        language: Language,
        source_id: str,
        file_hash: str,
        lines: list[str],
        parent_chunk_id: str,
    ) -> list[CodeChunk]:
        body = "\n".join(lines[symbol.body_start_line - 1 : symbol.end_line])

        if self._config.estimate_tokens(body) <= self._config.max_chunk_tokens:
            return [
                self._implementation_chunk(
                    body,
                    symbol,
                    symbol.signature,
                    symbol.body_start_line,
                    symbol.end_line,
                    file_path,
                    language,
                    source_id,
                    file_hash,
                    parent_chunk_id,
                )
            ]

        return self._split_into_chunks(
            body, symbol, file_path, language, source_id, file_hash, parent_chunk_id
        )

    def _split_into_chunks(
        self,
        body: str,
        symbol: ExtractedSymbol,
        file_path: str,
        language: Language,
        source_id: str,
        file_hash: str,
        parent_chunk_id: str,
    ) -> list[CodeChunk]:
        """Split an oversized body into overlapping line windows.

        Consecutive windows share ``overlap_lines`` lines and together cover
        every body line.
        """
        body_lines = body.split("\n")
        total = len(body_lines)
        max_lines = self._config.max_lines
        overlap = self._config.overlap_lines

        chunks = []
        start = 0
        part = 1
        while start < total:
            end = min(start + max_lines, total)
            chunks.append(
                self._implementation_chunk(
                    "\n".join(body_lines[start:end]),
                    symbol,
                    f"{symbol.signature} [part {part}]",
                    symbol.body_start_line + start,
                    symbol.body_start_line + end - 1,
                    file_path,
                    language,
                    source_id,
                    file_hash,
                    parent_chunk_id,
                )
            )
            start = end - overlap
            if start >= total - overlap:
                break
            part += 1

        return chunks

    def _implementation_chunk(
        self,
        content: str,
        symbol: ExtractedSymbol,
        signature: str,
        start_line: int,
        end_line: int,
        file_path: str,
        language: Language,
        source_id: str,
        file_hash: str,
        parent_chunk_id: str,
    ) -> CodeChunk:
        return CodeChunk(
            id=str(uuid.uuid4()),
            source_id=source_id,
            level=ChunkLevel.IMPLEMENTATION,
            chunk_type=symbol.kind,
            language=language,
            content=content,
            signature=signature,
            symbol_name=symbol.name,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            file_hash=file_hash,
            content_hash=content_hash(content),
            parent_chunk_id=parent_chunk_id,
        )

    def _create_file_summary_chunk(
        self,
        symbols: list[ExtractedSymbol],
        file_path: str,
        language: Language,
        source_id: str,
        file_hash: str,
        full_content: str,
    ) -> CodeChunk:
        signatures = "\n\n".join(symbol.signature for symbol in symbols)
        summary = f"// File: {file_path}\n// Symbols: {len(symbols)}\n\n{signatures}"

        return CodeChunk(
            id=str(uuid.uuid4()),
            source_id=source_id,
            level=ChunkLevel.SUMMARY,
            chunk_type=ChunkType.FILE_SUMMARY,
            language=language,
            content=summary,
            signature=f"File: {file_path}",
            symbol_name=PurePosixPath(file_path).name,
            file_path=file_path,
            start_line=1,
            end_line=len(full_content.split("\n")),
            file_hash=file_hash,
            content_hash=content_hash(summary),
            imports=extract_imports(full_content, language),
            exports=extract_exports(full_content, language),
        )
