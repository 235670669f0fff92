"""
emerge.log explorer

Fast, accurate merge-time statistics and predictions from a Portage emerge.log.

This package provides:
- A line scanner and event parser for emerge.log merge, unmerge and sync markers
- Session pairing that survives parallel merges, crashes and truncated logs
- Per-package duration statistics (mean, recency-weighted mean, last-N mean)
- Merge time predictions for in-progress and pretended merges

Basic usage:
    from emerge_explorer.parser.parsing_engine import LogParsingEngine
    from emerge_explorer.predict.predictor import Predictor
    from emerge_explorer.scanner.utils import read_log_lines

    engine = LogParsingEngine()
    report = engine.analyze(read_log_lines("/var/log/emerge.log"))

    for atom, stats in report.stats.items():
        print(f"{atom}: {stats.count} merges, {stats.mean_duration:.0f}s average")

    predictor = Predictor.from_report(report)
    for prediction in predictor.predict(open_sessions=report.open_at_end):
        print(prediction.atom, prediction.estimated_remaining)
"""

__version__ = "0.4.2"
