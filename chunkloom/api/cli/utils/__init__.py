"""CLI helpers."""

from .rich_output import ProgressManager, RichOutputFormatter

__all__ = ["ProgressManager", "RichOutputFormatter"]
