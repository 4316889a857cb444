"""
Landmark Sources

Where live snapshots come from. The sequencer only needs something with a
non-blocking current_snapshot(); this module provides:

- BufferedLandmarkSource: fed by a capture thread with landmark messages
  (one "MODE|index|x|y|z" line per landmark), averages samples per
  landmark and publishes complete snapshots
- StaticLandmarkSource: always returns the same snapshot (replays, tests)
"""

import logging
import threading
from typing import Iterable, Optional, Protocol, Sequence

import numpy as np

from ..domain.pose import LANDMARK_COUNT, LandmarkSnapshot

logger = logging.getLogger(__name__)

FREE_MODE = "FREE"
ANCHORED_MODE = "ANCHORED"


class LandmarkSource(Protocol):
    """Anything that can hand out the current frame's landmarks."""

    def current_snapshot(self) -> Optional[LandmarkSnapshot]:
        """Latest snapshot, or None if no data is available this frame. Never blocks."""
        ...


class StaticLandmarkSource:
    """Returns a fixed snapshot (or None)."""

    def __init__(self, snapshot: Optional[LandmarkSnapshot] = None):
        self.snapshot = snapshot

    def current_snapshot(self) -> Optional[LandmarkSnapshot]:
        return self.snapshot


def parse_landmark_message(
    message: str,
    anchored: bool = False,
) -> list[tuple[int, np.ndarray]]:
    """
    Parse a landmark message into (index, position) pairs.

    Each line is "MODE|index|x|y|z" where MODE is FREE or ANCHORED.
    Only lines matching the requested mode are kept; blank, short or
    malformed lines are skipped.

    Example:
        >>> parse_landmark_message("FREE|23|-0.1|0|0\\nFREE|24|0.1|0|0")
        [(23, array([-0.1,  0. ,  0. ])), (24, array([0.1, 0. , 0. ]))]
    """
    wanted = ANCHORED_MODE if anchored else FREE_MODE
    parsed = []

    for line in message.split("\n"):
        if not line.strip():
            continue

        parts = line.strip().split("|")
        if len(parts) < 5 or parts[0] != wanted:
            continue

        try:
            index = int(parts[1])
            position = np.array([float(parts[2]), float(parts[3]), float(parts[4])])
        except ValueError:
            logger.debug(f"Skipping malformed landmark line: {line!r}")
            continue

        if not np.isfinite(position).all():
            logger.debug(f"Skipping non-finite landmark line: {line!r}")
            continue

        parsed.append((index, position))

    return parsed


class BufferedLandmarkSource:
    """
    Accumulates landmark samples from a producer and publishes averaged snapshots.

    A landmark's published position is updated once it has collected
    samples_per_pose samples: their mean, times multiplier. The
    accumulator then restarts. current_snapshot() returns None until every
    landmark has been published at least once.

    push()/feed() may be called from a capture thread while the game loop
    calls current_snapshot(); a lock guards the buffers.

    Usage:
        source = BufferedLandmarkSource(samples_per_pose=2)
        source.feed("FREE|0|0.1|1.5|0.0\\n...")   # capture thread
        snapshot = source.current_snapshot()      # game loop
    """

    def __init__(
        self,
        landmark_count: int = LANDMARK_COUNT,
        samples_per_pose: int = 1,
        multiplier: float = 1.0,
        anchored: bool = False,
    ):
        if samples_per_pose < 1:
            raise ValueError("samples_per_pose must be at least 1")

        self.landmark_count = landmark_count
        self.samples_per_pose = samples_per_pose
        self.multiplier = multiplier
        self.anchored = anchored

        self._lock = threading.Lock()
        self._sums = np.zeros((landmark_count, 3))
        self._counts = np.zeros(landmark_count, dtype=int)
        self._published: dict[int, np.ndarray] = {}
        self._snapshot: Optional[LandmarkSnapshot] = None

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------

    def push(self, index: int, position: Sequence[float]) -> None:
        """Add one sample for a landmark. Out-of-range indices are ignored."""
        self.push_many([(index, position)])

    def push_many(self, samples: Iterable[tuple[int, Sequence[float]]]) -> None:
        with self._lock:
            changed = False
            for index, position in samples:
                if not 0 <= index < self.landmark_count:
                    logger.debug(f"Ignoring landmark index {index} (expected 0..{self.landmark_count - 1})")
                    continue

                self._sums[index] += np.asarray(position, dtype=np.float64)
                self._counts[index] += 1

                if self._counts[index] >= self.samples_per_pose:
                    self._published[index] = (self._sums[index] / self._counts[index]) * self.multiplier
                    self._sums[index] = 0.0
                    self._counts[index] = 0
                    changed = True

            if changed and len(self._published) == self.landmark_count:
                self._snapshot = LandmarkSnapshot(self._published)

    def feed(self, message: str) -> int:
        """
        Parse a landmark message and push its samples.

        Returns:
            Number of landmark lines accepted
        """
        samples = parse_landmark_message(message, anchored=self.anchored)
        self.push_many(samples)
        return len(samples)

    def clear(self) -> None:
        with self._lock:
            self._sums[:] = 0.0
            self._counts[:] = 0
            self._published.clear()
            self._snapshot = None

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------

    def current_snapshot(self) -> Optional[LandmarkSnapshot]:
        with self._lock:
            return self._snapshot
