"""Worker (task processor) configuration."""

import os
from typing import Any

from pydantic import BaseModel, Field


class WorkerConfig(BaseModel):
    """Settings for the background task processor."""

    poll_interval: float = Field(
        default=5.0, gt=0, description="Seconds between polls for pending jobs"
    )
    concurrency: int = Field(default=1, gt=0, description="Jobs run at once")
    cancellation_poll_interval: float = Field(
        default=2.0, gt=0, description="Seconds between cancellation checks per job"
    )
    log_flush_interval: float = Field(
        default=0.5, gt=0, description="Seconds between job log flushes"
    )
    skip_llm: bool = Field(default=False, description="Skip the summarize phase")

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load worker config from environment variables.

        ``POLL_INTERVAL_MS`` and ``WORKER_CONCURRENCY`` are honored for
        deployments that predate the prefixed names.
        """
        config: dict[str, Any] = {}

        if legacy_poll := os.getenv("POLL_INTERVAL_MS"):
            try:
                config["poll_interval"] = int(legacy_poll) / 1000
            except ValueError:
                pass
        if legacy_concurrency := os.getenv("WORKER_CONCURRENCY"):
            try:
                config["concurrency"] = int(legacy_concurrency)
            except ValueError:
                pass

        if poll := os.getenv("CHUNKLOOM_WORKER__POLL_INTERVAL"):
            try:
                config["poll_interval"] = float(poll)
            except ValueError:
                pass
        if concurrency := os.getenv("CHUNKLOOM_WORKER__CONCURRENCY"):
            try:
                config["concurrency"] = int(concurrency)
            except ValueError:
                pass
        if skip_llm := os.getenv("CHUNKLOOM_WORKER__SKIP_LLM"):
            config["skip_llm"] = skip_llm.lower() in ("true", "1", "yes")

        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        if getattr(args, "concurrency", None) is not None:
            overrides["concurrency"] = args.concurrency
        if getattr(args, "poll_interval", None) is not None:
            overrides["poll_interval"] = args.poll_interval
        if getattr(args, "skip_llm", False):
            overrides["skip_llm"] = True
        return overrides
