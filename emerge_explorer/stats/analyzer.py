from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import logging

from emerge_explorer.options import AnalysisOptions
from emerge_explorer.parser.base_parser import SessionType
from emerge_explorer.sessions.session_tracker import SessionStatus

logger = logging.getLogger(__name__)

PACKAGE_SESSION_TYPES = (SessionType.MERGE, SessionType.UNMERGE)


@dataclass
class PackageStats:
    """
    Running duration statistics for one atom (or one package, or one session
    type), folded one closed session at a time in chronological order.

    total_duration keeps the exact type of the durations (int, or Decimal for
    fractional logs); recent_weighted_mean is a float that is never rounded
    between folds.
    """

    decay: float = 0.7
    limit: int = 10
    count: int = 0
    total_duration: object = 0
    recent_weighted_mean: Optional[float] = None
    recent: deque = None
    anomalous: int = 0
    last_timestamp: object = None

    def __post_init__(self):
        if self.recent is None:
            self.recent = deque(maxlen=self.limit)

    @property
    def mean_duration(self):
        if self.count == 0:
            return None
        return float(self.total_duration / self.count)

    @property
    def recent_mean(self):
        if not self.recent:
            return None
        return float(sum(self.recent) / len(self.recent))

    def fold(self, duration, timestamp=None):
        self.count += 1
        self.total_duration += duration
        self.recent.append(duration)
        if self.recent_weighted_mean is None:
            self.recent_weighted_mean = float(duration)
        else:
            self.recent_weighted_mean = self.recent_weighted_mean * self.decay + float(
                duration
            ) * (1.0 - self.decay)
        if timestamp is not None:
            self.last_timestamp = timestamp

    def estimate(self, mode="weighted"):
        if mode == "weighted":
            return self.recent_weighted_mean
        elif mode == "mean":
            return self.mean_duration
        elif mode == "recent":
            return self.recent_mean
        raise ValueError(f"Unknown estimate mode: {mode}")


@dataclass
class AnalysisReport:
    """
    Result of one analysis run.

    `histories` and `stats` describe merges only, which is what predictions
    are built from; unmerges are kept apart in `unmerge_histories` and
    `unmerge_stats`.
    """

    histories: Dict[object, List] = field(default_factory=dict)
    stats: Dict[object, PackageStats] = field(default_factory=dict)
    unmerge_histories: Dict[object, List] = field(default_factory=dict)
    unmerge_stats: Dict[object, PackageStats] = field(default_factory=dict)
    totals: Dict[SessionType, PackageStats] = field(default_factory=dict)
    periods: Dict[str, Dict[SessionType, PackageStats]] = field(default_factory=dict)
    unterminated: list = field(default_factory=list)
    open_at_end: list = field(default_factory=list)
    interrupted: Dict[object, int] = field(default_factory=dict)
    warnings: list = field(default_factory=list)
    pairing_anomalies: list = field(default_factory=list)
    clock_anomalies: list = field(default_factory=list)
    lines_seen: int = 0
    lines_skipped: int = 0
    runs: int = 0
    per_version: bool = True
    cancelled: bool = False

    def stats_for(self, atom):
        return self.stats.get(atom if self.per_version else atom.package)

    def unmerge_stats_for(self, atom):
        return self.unmerge_stats.get(atom if self.per_version else atom.package)

    @property
    def anomalies(self):
        return self.warnings + self.pairing_anomalies + self.clock_anomalies


class SessionAggregator:
    """Folds finished sessions into per-atom histories and statistics."""

    def __init__(self, options=None):
        self.options = options or AnalysisOptions()
        # Per-atom tables, one per package session type
        self.histories = {t: defaultdict(list) for t in PACKAGE_SESSION_TYPES}
        self.stats = {t: {} for t in PACKAGE_SESSION_TYPES}
        self.totals = {}
        self.periods = {}
        self.unterminated = []
        self.interrupted = Counter()
        self._period = None

    def stats_key(self, atom):
        if atom is None or self.options.per_version:
            return atom
        return atom.package

    def _new_stats(self):
        return PackageStats(decay=self.options.decay, limit=self.options.limit)

    def _stats(self, table, key):
        if key not in table:
            table[key] = self._new_stats()
        return table[key]

    def add(self, session):
        session_type = session.session_type
        if session.status is SessionStatus.UNTERMINATED:
            self.unterminated.append(session)
            if session_type is SessionType.MERGE:
                self.interrupted[self.stats_key(session.atom)] += 1
            return
        if session.status is not SessionStatus.CLOSED:
            raise ValueError(f"Cannot aggregate a {session.status.value} session")

        key = self.stats_key(session.atom)
        per_atom = session_type in PACKAGE_SESSION_TYPES and session.atom is not None
        if self.options.keep_history and per_atom:
            self.histories[session_type][key].append(session)

        targets = [self._stats(self.totals, session_type)]
        if per_atom:
            targets.append(self._stats(self.stats[session_type], key))
        if self.options.timespan is not None:
            period = self.periods.setdefault(self._period_header(session.start), {})
            targets.append(self._stats(period, session_type))

        duration = session.duration
        trusted = duration >= 0 and (
            not session.anomalous or self.options.include_anomalous
        )
        for stats in targets:
            if session.anomalous:
                stats.anomalous += 1
            if trusted:
                stats.fold(duration, session.end)

    def add_all(self, sessions):
        for session in sessions:
            self.add(session)

    def _period_header(self, ts):
        # Sessions mostly arrive in time order, so reuse the current period
        # until a timestamp falls outside of it.
        if self._period is not None:
            start, end, header = self._period
            if start <= ts < end:
                return header
        timespan, tz = self.options.timespan, self.options.tz
        header = timespan.header(ts, tz)
        end = timespan.next(ts, tz)
        self._period = (ts, end, header)
        return header

    def report(self, **extra) -> AnalysisReport:
        logger.info(
            f"Aggregated {sum(s.count for s in self.totals.values())} sessions "
            f"over {len(self.stats[SessionType.MERGE])} merged packages"
        )
        return AnalysisReport(
            histories=dict(self.histories[SessionType.MERGE]),
            stats=dict(self.stats[SessionType.MERGE]),
            unmerge_histories=dict(self.histories[SessionType.UNMERGE]),
            unmerge_stats=dict(self.stats[SessionType.UNMERGE]),
            totals=dict(self.totals),
            periods=dict(self.periods),
            unterminated=list(self.unterminated),
            interrupted=dict(self.interrupted),
            per_version=self.options.per_version,
            **extra,
        )
