"""LLM providers for chunk summarization."""

from .openai_summarizer import OpenAISummarizer

__all__ = ["OpenAISummarizer"]
