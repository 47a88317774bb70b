"""Chunk data model"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Chunk:
    """One contiguous byte range of a resource with its precomputed hash"""
    index: int
    start: int
    end: int
    hash: str
    payload: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        if self.index < 0:
            raise ValueError(f"Chunk index must be non-negative, got {self.index}")
        if self.end < self.start:
            raise ValueError(f"Chunk {self.index} ends before it starts")

    @property
    def size(self) -> int:
        return self.end - self.start
