import re
import logging

from .base_parser import BaseParser, Event, EventKind, ParseWarning
from emerge_explorer.scanner.line_patterns import ATOM_PATTERN, COUNTER_PATTERN, patterns
from emerge_explorer.scanner.log_core import Atom

logger = logging.getLogger(__name__)


def parse_atom(text) -> Atom:
    """Split "[category/]name-version[:slot][::repo]" into an Atom."""
    match = ATOM_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Malformed atom: {text!r}")
    return Atom(match.group("category"), match.group("name"), match.group("version"))


def parse_counter(text):
    """Validate an "i of n" merge counter; returns the normalized text."""
    match = COUNTER_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Malformed merge counter: {text!r}")
    index, total = int(match.group("index")), int(match.group("total"))
    if index < 1 or total < 1 or index > total:
        raise ValueError(f"Merge counter out of range: {text!r}")
    return f"{index} of {total}"


class PackageFilter:
    """
    Select atoms by package.

    A regex is matched case-insensitively anywhere in "category/name". An exact
    filter compares against the whole name, or the whole "category/name" when
    it contains a slash.
    """

    def __init__(self, pattern, exact=False):
        self.pattern = pattern
        self.exact = exact
        if not exact:
            try:
                self.regex = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                raise ValueError(f"Invalid package filter {pattern!r}: {e}") from e

    def matches(self, atom):
        if atom is None:
            return True
        if self.exact:
            if "/" in self.pattern:
                return atom.package == self.pattern
            return atom.name == self.pattern
        return self.regex.search(atom.package) is not None


class EventParser(BaseParser):
    def __init__(self, package_filter=None):
        self.package_filter = package_filter
        self.payload = patterns["EventPayload"]
        self.handlers = {
            EventKind.MERGE_START: self._parse_merge,
            EventKind.MERGE_END: self._parse_merge,
            EventKind.UNMERGE_START: self._parse_unmerge,
            EventKind.UNMERGE_END: self._parse_unmerge,
            EventKind.SYNC_START: self._parse_sync,
            EventKind.SYNC_END: self._parse_sync,
            EventKind.EMERGE_START: self._parse_emerge_start,
        }

    def parse_token(self, token):
        kind = EventKind.from_token_kind(token.kind)
        try:
            event = self.handlers[kind](token, kind)
        except ValueError as e:
            logger.debug(f"Line {token.line_no}: {e}")
            return ParseWarning(token.line_no, str(e), token.raw_remainder)

        if self.package_filter and not self.package_filter.matches(event.atom):
            return None
        return event

    def _parse_merge(self, token, kind):
        name = "merge" if kind.is_start else "merge_done"
        match = self.payload[name].match(token.raw_remainder)
        if not match:
            raise ValueError(f"Malformed {kind.label} line")

        atom = parse_atom(match.group("atom"))
        key = None
        if match.group("counter") is not None:
            key = parse_counter(match.group("counter"))
        if match.group("pid"):
            key = f"pid {match.group('pid')}"
        return Event(token.timestamp, kind, atom, key, token.line_no)

    def _parse_unmerge(self, token, kind):
        name = "unmerge" if kind.is_start else "unmerge_done"
        match = self.payload[name].match(token.raw_remainder)
        if not match:
            raise ValueError(f"Malformed {kind.label} line")
        return Event(token.timestamp, kind, parse_atom(match.group("atom")), None, token.line_no)

    def _parse_sync(self, token, kind):
        if kind.is_start:
            match = self.payload["sync_repo"].match(token.raw_remainder)
            if match:
                repo = match.group("repo")
                return Event(token.timestamp, kind, None, repo, token.line_no, repo)
            match = self.payload["sync_rsync"].match(token.raw_remainder)
            if not match:
                raise ValueError(f"Malformed {kind.label} line")
            return Event(token.timestamp, kind, None, None, token.line_no, match.group("repo"))

        match = self.payload["sync_done"].match(token.raw_remainder)
        if not match:
            raise ValueError(f"Malformed {kind.label} line")
        repo = match.group("repo")
        # "completed with <rsync uri>" carries no repository name to pair on
        key = repo if match.group("how") == "for" else None
        return Event(token.timestamp, kind, None, key, token.line_no, repo)

    def _parse_emerge_start(self, token, kind):
        return Event(token.timestamp, kind, None, None, token.line_no)
