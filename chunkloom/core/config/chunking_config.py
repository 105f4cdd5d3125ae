"""Chunk sizing configuration."""

import math

from pydantic import BaseModel, Field, model_validator


class ChunkingConfig(BaseModel):
    """Controls how symbol bodies are split into implementation chunks.

    Token counts are estimated from character length. Oversized bodies are
    split into line windows whose size is derived from the token budget using
    ``tokens_per_line``; that ratio is a heuristic and can be tuned.
    """

    max_chunk_tokens: int = Field(default=512, gt=0)
    overlap_tokens: int = Field(default=50, ge=0)
    chars_per_token: int = Field(default=4, gt=0)
    tokens_per_line: int = Field(default=10, gt=0)

    @model_validator(mode="after")
    def validate_window(self) -> "ChunkingConfig":
        if self.max_lines <= self.overlap_lines:
            raise ValueError(
                f"Split window ({self.max_lines} lines) must be larger than "
                f"overlap ({self.overlap_lines} lines)"
            )
        return self

    @property
    def max_lines(self) -> int:
        return self.max_chunk_tokens // self.tokens_per_line

    @property
    def overlap_lines(self) -> int:
        return self.overlap_tokens // self.tokens_per_line

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)
