import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from emerge_explorer.parser.base_parser import Event, SessionType
from emerge_explorer.scanner.log_core import Atom, ClockAnomaly, Timestamp

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    UNTERMINATED = "unterminated"


class AnomalyKind(Enum):
    DUPLICATE_START = "duplicate_start"
    ORPHAN_END = "orphan_end"
    BACKWARD_TIME = "backward_time"


@dataclass(frozen=True)
class PairingAnomaly:
    kind: AnomalyKind
    line_no: int
    session_type: SessionType
    atom: Optional[Atom] = None
    key: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class Session:
    session_type: SessionType
    atom: Optional[Atom]
    key: Optional[str]
    start: Timestamp
    start_line: int = 0
    end: Optional[Timestamp] = None
    end_line: Optional[int] = None
    status: SessionStatus = SessionStatus.OPEN
    anomalous: bool = False
    reasons: tuple = ()
    repo: Optional[str] = None

    @property
    def session_key(self):
        return (self.session_type, self.atom, self.key)

    @property
    def duration(self):
        if self.status is not SessionStatus.CLOSED:
            return None
        return self.end - self.start

    def flag(self, reason):
        return replace(self, anomalous=True, reasons=self.reasons + (reason,))


@dataclass
class TrackerState:
    open: dict = field(default_factory=dict)
    anomalies: list = field(default_factory=list)
    runs: int = 0
    closed: int = 0
    unterminated: int = 0


class SessionTracker:
    """
    Pairs start and end events into sessions.

    Sessions are keyed by (session type, atom, pairing key), so any number of
    parallel merges can be open at once. Repair policy for a start whose key
    is already open: the stale session is finished as UNTERMINATED, a new one
    is opened and a DUPLICATE_START anomaly is recorded.

    An end event is matched, in order, to: the open session with the exact
    key; when the end carries no key, the earliest open session of the same
    type and atom; when it does, an open keyless session of that type and
    atom. Anything else is an ORPHAN_END and produces no session.
    """

    def __init__(self):
        self.state = TrackerState()

    @property
    def anomalies(self):
        return self.state.anomalies

    @property
    def runs(self):
        return self.state.runs

    @property
    def closed(self):
        return self.state.closed

    @property
    def unterminated(self):
        return self.state.unterminated

    def open_sessions(self):
        return list(self.state.open.values())

    def process(self, item):
        """Feed one Event or ClockAnomaly; return the sessions it finished."""
        if isinstance(item, ClockAnomaly):
            self._mark_clock_anomaly(item)
            return []
        if not isinstance(item, Event):
            return []
        if item.kind.session_type is SessionType.RUN:
            self.state.runs += 1
            return []
        if item.kind.is_start:
            return self._start(item)
        return self._end(item)

    def process_all(self, items):
        for item in items:
            yield from self.process(item)

    def finish(self):
        """End of stream: every open session becomes UNTERMINATED."""
        finished = [
            replace(session, status=SessionStatus.UNTERMINATED)
            for session in self.state.open.values()
        ]
        self.state.open.clear()
        self.state.unterminated += len(finished)
        logger.info(
            f"Paired {self.state.closed} sessions, {self.state.unterminated} "
            f"unterminated ({len(finished)} still open at end of stream)"
        )
        return finished

    def _start(self, event):
        session_type = event.kind.session_type
        key = (session_type, event.atom, event.key)
        finished = []

        stale = self.state.open.pop(key, None)
        if stale is not None:
            message = (
                f"{session_type.value} {self._describe(event)} restarted at line "
                f"{event.line_no} while open since line {stale.start_line}"
            )
            logger.warning(message)
            self._record(AnomalyKind.DUPLICATE_START, event, message)
            finished.append(
                replace(stale.flag("restarted"), status=SessionStatus.UNTERMINATED)
            )
            self.state.unterminated += 1

        self.state.open[key] = Session(
            session_type=session_type,
            atom=event.atom,
            key=event.key,
            start=event.timestamp,
            start_line=event.line_no,
            repo=event.repo,
        )
        return finished

    def _end(self, event):
        key = self._match(event)
        if key is None:
            message = (
                f"{event.kind.label} {self._describe(event)} at line "
                f"{event.line_no} has no matching start"
            )
            logger.debug(message)
            self._record(AnomalyKind.ORPHAN_END, event, message)
            return []

        session = self.state.open.pop(key)
        session = replace(
            session,
            end=event.timestamp,
            end_line=event.line_no,
            status=SessionStatus.CLOSED,
        )
        if event.timestamp < session.start:
            message = (
                f"{session.session_type.value} {self._describe(event)} ends at line "
                f"{event.line_no} before it started"
            )
            logger.warning(message)
            self._record(AnomalyKind.BACKWARD_TIME, event, message)
            session = session.flag("negative duration")
        self.state.closed += 1
        return [session]

    def _match(self, event):
        session_type = event.kind.session_type
        exact = (session_type, event.atom, event.key)
        if exact in self.state.open:
            return exact

        for key in self.state.open:
            other_type, atom, other_key = key
            if other_type is not session_type or atom != event.atom:
                continue
            if event.key is None or other_key is None:
                return key
        return None

    def _mark_clock_anomaly(self, anomaly):
        if not self.state.open:
            return
        logger.warning(
            f"Clock went back {anomaly.backward_by}s at line {anomaly.line_no}, "
            f"flagging {len(self.state.open)} open sessions"
        )
        for key, session in self.state.open.items():
            self.state.open[key] = session.flag("clock anomaly")

    def _record(self, kind, event, message):
        self.state.anomalies.append(
            PairingAnomaly(
                kind=kind,
                line_no=event.line_no,
                session_type=event.kind.session_type,
                atom=event.atom,
                key=event.key,
                message=message,
            )
        )

    @staticmethod
    def _describe(event):
        if event.atom is not None:
            return str(event.atom)
        return event.repo or "sync"
