from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Optional

from emerge_explorer.scanner.dates import DateParser, Timespan


@dataclass
class TimeFilter:
    """Inclusive bounds on line timestamps; either side may be open."""

    start_time: Optional[int] = None
    end_time: Optional[int] = None

    @classmethod
    def from_strings(cls, start=None, end=None, tz=timezone.utc, now=None):
        return cls(
            start_time=DateParser.parse_date(start, tz, now) if start else None,
            end_time=DateParser.parse_date(end, tz, now) if end else None,
        )

    def before_start(self, ts):
        return self.start_time is not None and ts < self.start_time

    def after_end(self, ts):
        return self.end_time is not None and ts > self.end_time


@dataclass
class AnalysisOptions:
    decay: float = 0.7  # weight kept by the previous weighted mean on each fold
    limit: int = 10  # samples used by the last-N mean
    per_version: bool = True
    keep_history: bool = True
    include_anomalous: bool = False
    package: Optional[str] = None
    exact: bool = False
    time_filter: TimeFilter = field(default_factory=TimeFilter)
    timespan: Optional[Timespan] = None
    tz: tzinfo = timezone.utc
    workers: int = 1
    chunk_size: int = 1024
    queue_size: int = 16

    def __post_init__(self):
        if not 0.0 <= self.decay < 1.0:
            raise ValueError(f"decay must be in [0, 1), got {self.decay}")
        if self.limit < 1:
            raise ValueError(f"limit must be at least 1, got {self.limit}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.chunk_size < 1 or self.queue_size < 1:
            raise ValueError("chunk_size and queue_size must be positive")
        if isinstance(self.timespan, str):
            self.timespan = Timespan.parse(self.timespan)
