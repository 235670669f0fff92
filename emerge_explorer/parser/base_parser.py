from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from emerge_explorer.scanner.log_core import Atom, Timestamp, TokenKind


class SessionType(Enum):
    MERGE = "merge"
    UNMERGE = "unmerge"
    SYNC = "sync"
    RUN = "run"


class EventKind(Enum):
    MERGE_START = ("merge_start", SessionType.MERGE, True)
    MERGE_END = ("merge_end", SessionType.MERGE, False)
    UNMERGE_START = ("unmerge_start", SessionType.UNMERGE, True)
    UNMERGE_END = ("unmerge_end", SessionType.UNMERGE, False)
    SYNC_START = ("sync_start", SessionType.SYNC, True)
    SYNC_END = ("sync_end", SessionType.SYNC, False)
    EMERGE_START = ("emerge_start", SessionType.RUN, True)

    def __init__(self, label, session_type, is_start):
        self.label = label
        self.session_type = session_type
        self.is_start = is_start

    @classmethod
    def from_token_kind(cls, token_kind):
        if token_kind is TokenKind.OTHER:
            raise ValueError("OTHER tokens do not produce events")
        return cls[token_kind.name]


@dataclass(frozen=True)
class Event:
    timestamp: Timestamp
    kind: EventKind
    atom: Optional[Atom] = None
    key: Optional[str] = None
    line_no: int = 0
    repo: Optional[str] = None


@dataclass(frozen=True)
class ParseWarning:
    line_no: int
    reason: str
    raw: str = ""


@dataclass
class ParseResult:
    events: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def total(self):
        return len(self.events) + len(self.warnings)

    @property
    def success_rate(self):
        return len(self.events) / self.total if self.total > 0 else 0.0


class BaseParser(ABC):
    @abstractmethod
    def parse_token(self, token):
        """Return an Event, a ParseWarning, or None for tokens to ignore."""
        pass

    def parse_tokens(self, tokens):
        for token in tokens:
            if token is None or token.kind is TokenKind.OTHER:
                continue
            result = self.parse_token(token)
            if result is not None:
                yield result

    def parse_all(self, tokens) -> ParseResult:
        result = ParseResult()
        for item in self.parse_tokens(tokens):
            if isinstance(item, ParseWarning):
                result.warnings.append(item)
            else:
                result.events.append(item)
        return result
