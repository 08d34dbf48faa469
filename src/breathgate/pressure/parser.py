"""
Chunk Parser

Turns raw sensor text into validated pressure samples. Chunks may hold any
number of lines (a batched delivery) or a single reading, with '#' comment
lines and stray units mixed in.
"""

import re
import math
import time
import logging
from typing import Callable, List, Optional
from dataclasses import dataclass

from .pressure_signal import PressureSample

log = logging.getLogger(__name__)

# First signed decimal literal anywhere in a line. float() never consults the
# host locale, so '.' is always the decimal separator.
NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

COMMENT_MARKER = "#"


@dataclass(frozen=True)
class ParseDiagnostic:
    """A line that could not be turned into a sample"""
    line: str
    reason: str


def parse_line(line: str) -> Optional[float]:
    """
    Extract the reading from a single trimmed line

    Returns:
        The value in kPa, or None if the line holds no usable number
    """
    match = NUMBER_RE.search(line)
    if match is None:
        return None

    value = float(match.group(0))
    if not math.isfinite(value):
        return None

    return value


class ChunkParser:
    """Line splitter and number extractor for pressure text"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._sample_callbacks: List[Callable[[PressureSample], None]] = []
        self._diagnostic_callbacks: List[Callable[[ParseDiagnostic], None]] = []
        self.metrics = {
            'chunks': 0,
            'lines': 0,
            'samples': 0,
            'comments': 0,
            'failures': 0,
        }

    def add_sample_callback(self, callback: Callable[[PressureSample], None]):
        self._sample_callbacks.append(callback)

    def add_diagnostic_callback(self, callback: Callable[[ParseDiagnostic], None]):
        self._diagnostic_callbacks.append(callback)

    def parse(self, chunk: str) -> List[PressureSample]:
        """
        Parse one delivery into samples, in line order

        Blank lines and comment lines are skipped silently. Lines without a
        number produce a diagnostic and nothing else.

        Args:
            chunk: Raw text from a transport

        Returns:
            Samples extracted from the chunk
        """
        self.metrics['chunks'] += 1
        samples: List[PressureSample] = []

        if not chunk:
            return samples

        for raw_line in chunk.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
            line = raw_line.strip()
            if not line:
                continue

            self.metrics['lines'] += 1

            if line.startswith(COMMENT_MARKER):
                self.metrics['comments'] += 1
                continue

            value = parse_line(line)
            if value is None:
                self._report_failure(line, "no number in line")
                continue

            sample = PressureSample(value_kpa=value, received_at=self.clock())
            samples.append(sample)
            self.metrics['samples'] += 1
            self._emit_sample(sample)

        return samples

    def _emit_sample(self, sample: PressureSample):
        for callback in self._sample_callbacks:
            try:
                callback(sample)
            except Exception as e:
                log.error(f"Sample callback error: {e}")

    def _report_failure(self, line: str, reason: str):
        self.metrics['failures'] += 1
        log.warning(f"Pressure parse failed ({reason}): {line!r}")

        diagnostic = ParseDiagnostic(line=line, reason=reason)
        for callback in self._diagnostic_callbacks:
            try:
                callback(diagnostic)
            except Exception as e:
                log.error(f"Diagnostic callback error: {e}")
