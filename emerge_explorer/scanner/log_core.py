from enum import Enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

Timestamp = Union[int, Decimal]


class TokenKind(Enum):
    MERGE_START = "merge_start"
    MERGE_END = "merge_end"
    UNMERGE_START = "unmerge_start"
    UNMERGE_END = "unmerge_end"
    SYNC_START = "sync_start"
    SYNC_END = "sync_end"
    EMERGE_START = "emerge_start"
    OTHER = "other"


@dataclass(frozen=True)
class LogLine:
    text: str
    line_no: int


@dataclass(frozen=True)
class Token:
    timestamp: Timestamp
    kind: TokenKind
    raw_remainder: str
    line_no: int = 0


@dataclass(frozen=True)
class Atom:
    """A package identity: category/name-version."""

    category: Optional[str]
    name: str
    version: str

    @property
    def package(self):
        if self.category:
            return f"{self.category}/{self.name}"
        return self.name

    def __str__(self):
        return f"{self.package}-{self.version}"


@dataclass(frozen=True)
class ClockAnomaly:
    """Timestamp regression between two consecutive timestamped lines."""

    line_no: int
    previous: Timestamp
    current: Timestamp

    @property
    def backward_by(self):
        return self.previous - self.current
