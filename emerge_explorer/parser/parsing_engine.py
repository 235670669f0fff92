import queue
import threading
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor

from .base_parser import ParseWarning
from .event_parser import EventParser, PackageFilter
from emerge_explorer.options import AnalysisOptions
from emerge_explorer.scanner.line_scanner import LineScanner, ScanStats
from emerge_explorer.scanner.log_core import ClockAnomaly, LogLine, TokenKind
from emerge_explorer.sessions.session_tracker import SessionTracker
from emerge_explorer.stats.analyzer import AnalysisReport, SessionAggregator

logger = logging.getLogger(__name__)

_END = object()


def numbered_lines(lines):
    """Wrap plain strings into LogLines numbered from 1; LogLines pass through."""
    for line_no, line in enumerate(lines, 1):
        if isinstance(line, LogLine):
            yield line
        else:
            yield LogLine(line.rstrip("\n\r"), line_no)


class _Sequencer:
    """
    In-order stage between parsing and pairing: detects clock anomalies and
    applies the time filter. Must see tokens in original line order.
    """

    def __init__(self, time_filter):
        self.time_filter = time_filter
        self.last_timestamp = None
        self.past_end = False

    def feed(self, token, result):
        if token is None:
            return
        if self.time_filter.after_end(token.timestamp):
            self.past_end = True
            return
        if self.last_timestamp is not None and token.timestamp < self.last_timestamp:
            yield ClockAnomaly(token.line_no, self.last_timestamp, token.timestamp)
        self.last_timestamp = token.timestamp
        if result is None or self.time_filter.before_start(token.timestamp):
            return
        yield result


class LogParsingEngine:
    def __init__(self, options=None):
        self.options = options or AnalysisOptions()
        package_filter = None
        if self.options.package:
            package_filter = PackageFilter(self.options.package, self.options.exact)
        self.parser = EventParser(package_filter)
        self.cancel_event = threading.Event()
        self.scan_stats = ScanStats()
        logger.info(
            f"Initialized parsing engine with {self.options.workers} workers, "
            f"chunk size {self.options.chunk_size}"
        )

    def cancel(self):
        """Stop reading further lines; already queued lines are still drained."""
        self.cancel_event.set()

    def _parse_line(self, scanner, line):
        token = scanner.scan(line)
        if token is None or token.kind is TokenKind.OTHER:
            return token, None
        return token, self.parser.parse_token(token)

    def _parse_chunk(self, chunk):
        scanner = LineScanner()
        results = [self._parse_line(scanner, line) for line in chunk]
        return results, scanner.stats

    def iter_events(self, lines):
        """
        Lazily yield Events, ParseWarnings and ClockAnomalies in line order.

        Runs in the caller's thread; each call starts over from the first line.
        """
        self.cancel_event.clear()
        scanner = LineScanner()
        self.scan_stats = scanner.stats
        sequencer = _Sequencer(self.options.time_filter)
        for line in numbered_lines(lines):
            if self.cancel_event.is_set():
                break
            token, result = self._parse_line(scanner, line)
            yield from sequencer.feed(token, result)
            if sequencer.past_end:
                logger.info("Reached end of time filter")
                self.cancel()
                break

    def _produce(self, lines, handoff, stop, errors):
        chunk = []
        try:
            for line in numbered_lines(lines):
                if self.cancel_event.is_set():
                    break
                chunk.append(line)
                if len(chunk) >= self.options.chunk_size:
                    if not self._put(handoff, chunk, stop):
                        return
                    chunk = []
            if chunk and not self.cancel_event.is_set():
                self._put(handoff, chunk, stop)
        except Exception as e:
            logger.error(f"Error reading log lines: {e}")
            errors.append(e)
        finally:
            self._put(handoff, _END, stop, force=True)

    def _put(self, handoff, item, stop, force=False):
        # Blocks while the consumer is behind. Cancellation drops further
        # chunks but the end marker is still delivered while the consumer runs.
        while not stop.is_set():
            if self.cancel_event.is_set() and not force:
                return False
            try:
                handoff.put(item, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def _chunks(self, handoff):
        while True:
            item = handoff.get()
            if item is _END:
                return
            yield item

    def _parsed_chunks(self, chunks):
        if self.options.workers == 1:
            for chunk in chunks:
                yield self._parse_chunk(chunk)
            return

        # Bounded window of in-flight chunks, collected in submission order.
        window = self.options.workers * 2
        with ThreadPoolExecutor(max_workers=self.options.workers) as executor:
            pending = deque()
            for chunk in chunks:
                pending.append(executor.submit(self._parse_chunk, chunk))
                if len(pending) >= window:
                    yield pending.popleft().result()
            while pending:
                yield pending.popleft().result()

    def pipeline(self, lines):
        """
        Threaded variant of iter_events: a reader thread feeds a bounded queue
        of line chunks, chunks are parsed on a worker pool, and results are
        yielded in original line order.
        """
        self.cancel_event.clear()
        self.scan_stats = ScanStats()
        handoff = queue.Queue(maxsize=self.options.queue_size)
        stop = threading.Event()
        errors = []
        reader = threading.Thread(
            target=self._produce,
            args=(lines, handoff, stop, errors),
            name="emerge-log-reader",
            daemon=True,
        )
        reader.start()

        sequencer = _Sequencer(self.options.time_filter)
        parsed = self._parsed_chunks(self._chunks(handoff))
        try:
            for results, stats in parsed:
                self.scan_stats.merge(stats)
                for token, result in results:
                    yield from sequencer.feed(token, result)
                    if sequencer.past_end:
                        break
                if sequencer.past_end:
                    logger.info("Reached end of time filter, stopping reader")
                    self.cancel()
                    break
        finally:
            stop.set()
            self._drain(handoff)
            reader.join()
            parsed.close()
        if errors:
            raise errors[0]

    def _drain(self, handoff):
        while True:
            try:
                handoff.get_nowait()
            except queue.Empty:
                return

    def analyze(self, lines, threaded=True) -> AnalysisReport:
        items = self.pipeline(lines) if threaded else self.iter_events(lines)
        report = analyze_events(items, self.options)
        report.lines_seen = self.scan_stats.lines_seen
        report.lines_skipped = self.scan_stats.lines_skipped
        report.cancelled = self.cancel_event.is_set()
        logger.info(
            f"Analyzed {report.lines_seen} lines: {len(report.warnings)} warnings, "
            f"{len(report.pairing_anomalies)} pairing anomalies, "
            f"{len(report.clock_anomalies)} clock anomalies"
        )
        return report


def analyze_events(items, options=None) -> AnalysisReport:
    """
    Pair and aggregate a complete or partial stream of parsed items.

    The tracker and aggregator are owned by this single call; the stream is
    finalized with the end-of-stream rule once it is exhausted.
    """
    options = options or AnalysisOptions()
    tracker = SessionTracker()
    aggregator = SessionAggregator(options)
    warnings = []
    clock_anomalies = []

    for item in items:
        if isinstance(item, ParseWarning):
            warnings.append(item)
            continue
        if isinstance(item, ClockAnomaly):
            clock_anomalies.append(item)
        aggregator.add_all(tracker.process(item))

    open_at_end = tracker.finish()
    aggregator.add_all(open_at_end)
    return aggregator.report(
        open_at_end=open_at_end,
        warnings=warnings,
        pairing_anomalies=list(tracker.anomalies),
        clock_anomalies=clock_anomalies,
        runs=tracker.runs,
    )
