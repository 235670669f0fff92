import logging
from dataclasses import dataclass

from .line_patterns import LINE_PREFIX, marker_patterns
from .log_core import LogLine, Token, TokenKind
from .dates import DateParser

logger = logging.getLogger(__name__)


@dataclass
class ScanStats:
    lines_seen: int = 0
    lines_skipped: int = 0
    lines_other: int = 0
    tokens: int = 0

    def merge(self, other):
        self.lines_seen += other.lines_seen
        self.lines_skipped += other.lines_skipped
        self.lines_other += other.lines_other
        self.tokens += other.tokens


class LineScanner:
    """Classifies raw emerge.log lines into timestamped tokens."""

    def __init__(self):
        self.stats = ScanStats()

    @classmethod
    def scan_line(cls, text, line_no=0):
        """
        Classify one line.

        Returns None when the line has no leading epoch (a skipped line), a
        Token of kind OTHER when the message matches no known marker.
        """
        match = LINE_PREFIX.match(text.rstrip())
        if not match:
            return None

        timestamp = DateParser.parse_epoch(match.group("ts"))
        if timestamp is None:
            return None

        message = match.group("message")
        for pattern in marker_patterns():
            if pattern.pattern.match(message):
                return Token(timestamp, pattern.kind, message, line_no)
        return Token(timestamp, TokenKind.OTHER, message, line_no)

    def scan(self, line):
        if isinstance(line, LogLine):
            text, line_no = line.text, line.line_no
        else:
            text, line_no = line, self.stats.lines_seen + 1

        self.stats.lines_seen += 1
        token = self.scan_line(text, line_no)
        if token is None:
            self.stats.lines_skipped += 1
        elif token.kind is TokenKind.OTHER:
            self.stats.lines_other += 1
        else:
            self.stats.tokens += 1
        return token

    def scan_lines(self, lines):
        """Yield a token (or None for skipped lines) for every input line."""
        for line in lines:
            yield self.scan(line)
