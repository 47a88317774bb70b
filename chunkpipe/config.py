"""Pipeline configuration"""

from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Union
import logging

import yaml

from .control.retry import RetryPolicy

logger = logging.getLogger(__name__)

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass
class PipelineConfig:
    """Pipeline configuration"""
    concurrency: int = 6
    chunk_size: Optional[int] = None  # bytes, None = min(1MB, file size)
    workers: Optional[int] = None  # reader count, None = CPU count
    base_delay_ms: float = 1000
    max_delay_ms: float = 5000
    max_attempts: Optional[int] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int) \
                or self.concurrency < 1:
            raise ValueError(f"concurrency must be an integer >= 1, got {self.concurrency!r}")
        if self.chunk_size is not None and self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.workers is not None and self.workers < 1:
            raise ValueError(f"workers must be positive, got {self.workers}")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")

        # Validates the retry settings
        self.retry_policy()

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            max_attempts=self.max_attempts
        )

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(path: Optional[Union[str, Path]] = None, **overrides) -> PipelineConfig:
    """
    Load configuration from a YAML file.
    Missing file means defaults; keyword overrides that are not None win.
    """
    data = {}

    if path is not None:
        path = Path(path)
        if path.exists():
            with open(path, 'r') as f:
                loaded = yaml.safe_load(f)
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Config file {path} must contain a mapping")
            data.update(loaded)
            logger.debug(f"Loaded config from {path}")
        else:
            logger.warning(f"Config file {path} not found, using defaults")

    data.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(PipelineConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    return PipelineConfig(**data)
