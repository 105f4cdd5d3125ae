"""Summarizer interface for chunkloom."""

from abc import ABC, abstractmethod

from chunkloom.core.models import CodeSummary
from chunkloom.core.types.common import Language


class Summarizer(ABC):
    """Produces a short natural-language summary and keywords for code."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'openai')."""
        ...

    @abstractmethod
    async def summarize(
        self,
        content: str,
        language: Language,
        symbol_name: str | None = None,
    ) -> CodeSummary:
        """
        Summarize a code fragment.

        Args:
            content: Code text to summarize
            language: Language of the code
            symbol_name: Name of the symbol the code belongs to, if any

        Returns:
            CodeSummary with summary text and keywords
        """
        ...
