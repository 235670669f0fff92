import time
import logging
from dataclasses import dataclass
from typing import Optional

from emerge_explorer.parser.base_parser import SessionType
from emerge_explorer.scanner.log_core import Atom

logger = logging.getLogger(__name__)

ESTIMATE_MODES = ("weighted", "mean", "recent")


@dataclass(frozen=True)
class Prediction:
    atom: Atom
    estimated_total: Optional[float] = None
    estimated_remaining: Optional[float] = None
    elapsed: Optional[float] = None
    basis: int = 0

    @property
    def known(self):
        return self.basis > 0


@dataclass(frozen=True)
class BatchEstimate:
    total: float
    remaining: float
    unknown: int
    count: int


class Predictor:
    """Estimates merge times from aggregated per-atom statistics."""

    def __init__(self, stats, per_version=True, mode="weighted"):
        if mode not in ESTIMATE_MODES:
            raise ValueError(f"Unknown estimate mode: {mode}")
        self.stats = stats
        self.per_version = per_version
        self.mode = mode

    @classmethod
    def from_report(cls, report, mode="weighted"):
        return cls(report.stats, per_version=report.per_version, mode=mode)

    def _lookup(self, atom):
        return self.stats.get(atom if self.per_version else atom.package)

    def predict_atom(self, atom, started=None, now=None):
        stats = self._lookup(atom)
        if stats is None or stats.count == 0:
            return Prediction(atom=atom, basis=0)

        total = stats.estimate(self.mode)
        if started is None:
            return Prediction(atom=atom, estimated_total=total, basis=stats.count)

        # Fractional logs give Decimal starts; time.time() is a float
        now = time.time() if now is None else now
        elapsed = float(now) - float(started)
        return Prediction(
            atom=atom,
            estimated_total=total,
            estimated_remaining=max(0.0, total - elapsed),
            elapsed=elapsed,
            basis=stats.count,
        )

    def predict(self, atoms=(), open_sessions=(), now=None):
        """
        Predict in-progress merges first, then the planned atoms.

        Planned atoms that are already being merged are not predicted twice.
        """
        predictions = []
        in_progress = set()
        for session in open_sessions:
            if session.session_type is not SessionType.MERGE:
                continue
            in_progress.add(session.atom)
            predictions.append(self.predict_atom(session.atom, session.start, now))

        for atom in atoms:
            if atom in in_progress:
                continue
            predictions.append(self.predict_atom(atom))

        unknown = sum(1 for p in predictions if not p.known)
        logger.info(f"Predicted {len(predictions)} merges, {unknown} without history")
        return predictions


def batch_total(predictions) -> BatchEstimate:
    """Sum a batch of independent predictions; unknown atoms only get counted."""
    total = 0.0
    remaining = 0.0
    unknown = 0
    for prediction in predictions:
        if not prediction.known:
            unknown += 1
            continue
        total += prediction.estimated_total
        if prediction.estimated_remaining is not None:
            remaining += prediction.estimated_remaining
        else:
            remaining += prediction.estimated_total
    return BatchEstimate(total=total, remaining=remaining, unknown=unknown, count=len(predictions))
