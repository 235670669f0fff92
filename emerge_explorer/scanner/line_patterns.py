import re
from typing import List
from dataclasses import dataclass

from .log_core import TokenKind


@dataclass
class LogPattern:
    """Represents a marker pattern with the token kind it produces."""

    pattern: re.Pattern
    kind: TokenKind
    name: str


# Every emerge.log line starts with the epoch, a colon and some padding.
LINE_PREFIX = re.compile(r"^(?P<ts>[0-9]+(?:\.[0-9]+)?):[ \t]*(?P<message>.*)$")

# Matched against the message only, so a marker phrase appearing later in the
# text never classifies the line.
patterns = {
    "EmergeLog": [
        LogPattern(
            pattern=re.compile(r"^>>> emerge "),
            kind=TokenKind.MERGE_START,
            name="merge_start",
        ),
        LogPattern(
            pattern=re.compile(r"^::: completed emerge "),
            kind=TokenKind.MERGE_END,
            name="merge_end",
        ),
        LogPattern(
            pattern=re.compile(r"^=== Unmerging\.\.\. \("),
            kind=TokenKind.UNMERGE_START,
            name="unmerge_start",
        ),
        LogPattern(
            pattern=re.compile(r"^>>> unmerge success: "),
            kind=TokenKind.UNMERGE_END,
            name="unmerge_end",
        ),
        LogPattern(
            pattern=re.compile(r"^>>> Syncing repository '"),
            kind=TokenKind.SYNC_START,
            name="sync_repo_start",
        ),
        LogPattern(
            pattern=re.compile(r"^>>> Starting rsync with "),
            kind=TokenKind.SYNC_START,
            name="sync_rsync_start",
        ),
        LogPattern(
            pattern=re.compile(r"^=== Sync completed (?:for|with) "),
            kind=TokenKind.SYNC_END,
            name="sync_end",
        ),
        LogPattern(
            pattern=re.compile(r"^Started emerge on: "),
            kind=TokenKind.EMERGE_START,
            name="emerge_start",
        ),
    ],
    # Payload grammars, applied by the event parser to the marker remainder.
    "EventPayload": {
        "merge": re.compile(
            r"^>>> emerge (?:\((?P<counter>[^)]*)\) )?(?P<atom>\S+)"
            r"(?: to (?P<root>\S+))?(?: \(pid (?P<pid>[0-9]+)\))?"
        ),
        "merge_done": re.compile(
            r"^::: completed emerge (?:\((?P<counter>[^)]*)\) )?(?P<atom>\S+)"
            r"(?: to (?P<root>\S+))?(?: \(pid (?P<pid>[0-9]+)\))?"
        ),
        "unmerge": re.compile(r"^=== Unmerging\.\.\. \((?P<atom>[^)\s]+)\)"),
        "unmerge_done": re.compile(r"^>>> unmerge success: (?P<atom>\S+)"),
        "sync_repo": re.compile(r"^>>> Syncing repository '(?P<repo>[^']+)'"),
        "sync_rsync": re.compile(r"^>>> Starting rsync with (?P<repo>\S+)"),
        "sync_done": re.compile(r"^=== Sync completed (?P<how>for|with) (?P<repo>\S+)"),
    },
}

# Lazy name up to the first "-<digit>" that starts a full version string.
ATOM_PATTERN = re.compile(
    r"^(?:(?P<category>[A-Za-z0-9+_.-]+)/)?(?P<name>[A-Za-z0-9+_][A-Za-z0-9+_.-]*?)"
    r"-(?P<version>[0-9][0-9a-z._-]*)(?::[^\s]*)?$"
)

COUNTER_PATTERN = re.compile(r"^(?P<index>[0-9]+) of (?P<total>[0-9]+)$")

# `emerge -p` output, e.g. "[ebuild   R    ] dev-lang/python-3.11.4:3.11::gentoo"
PRETEND_PATTERN = re.compile(r"^\[[^]]+\] +(?P<atom>\S+?)(?: |$)")


def marker_patterns() -> List[LogPattern]:
    return patterns["EmergeLog"]
