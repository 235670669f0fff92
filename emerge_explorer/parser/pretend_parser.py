import logging

from .event_parser import parse_atom
from emerge_explorer.scanner.line_patterns import PRETEND_PATTERN

logger = logging.getLogger(__name__)


class PretendParser:
    """Extracts the atoms listed by `emerge --pretend` output."""

    def parse_line(self, line):
        match = PRETEND_PATTERN.match(line.strip())
        if not match:
            return None
        try:
            return parse_atom(match.group("atom"))
        except ValueError as e:
            logger.debug(f"Skipping pretend line {line.strip()!r}: {e}")
            return None

    def parse_lines(self, lines):
        atoms = []
        for line in lines:
            atom = self.parse_line(line)
            if atom is not None:
                atoms.append(atom)
        logger.info(f"Found {len(atoms)} pending merges in pretend output")
        return atoms
