"""
Pose Registry Service

Owns the set of recorded reference poses, keyed by canonical name, and
keeps them in sync with the pose store on disk.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..domain.errors import IncompleteSnapshotError, PoseRecordError
from ..domain.pose import LANDMARK_COUNT, LandmarkSnapshot, RecordedPose, canonical_name
from .pose_store import PoseStore

logger = logging.getLogger(__name__)


class PoseRegistry:
    """
    Canonical-name registry of recorded poses.

    Names are trimmed and case-folded before every insert and lookup, so
    "Pose A", "pose a" and "  POSE A " all refer to one entry. Recording
    a pose under an existing name replaces it.

    Mutations (record, load_all) are meant to run between sequencer ticks,
    never in the middle of one.

    Usage:
        registry = PoseRegistry("data/poses")
        registry.load_all()

        pose = registry.record("Arms Up", snapshot)
        same = registry.lookup("  arms up ")
    """

    def __init__(
        self,
        directory: Union[str, Path, PoseStore],
        default_tolerance: float = 0.15,
        landmark_count: int = LANDMARK_COUNT,
    ):
        """
        Args:
            directory: Pose folder, or a ready PoseStore
            default_tolerance: Tolerance used when record() isn't given one
            landmark_count: Landmarks a snapshot needs to be recordable
        """
        self.store = directory if isinstance(directory, PoseStore) else PoseStore(directory)
        self.default_tolerance = default_tolerance
        self.landmark_count = landmark_count
        self._poses: dict[str, RecordedPose] = {}
        # File each pose was last read from or written to
        self._paths: dict[str, Path] = {}

    def __len__(self) -> int:
        return len(self._poses)

    def __contains__(self, raw_name: object) -> bool:
        return isinstance(raw_name, str) and canonical_name(raw_name) in self._poses

    def names(self) -> list[str]:
        """Canonical names of all registered poses, sorted."""
        return sorted(self._poses)

    def get_all(self) -> list[RecordedPose]:
        return [self._poses[name] for name in self.names()]

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def lookup(self, raw_name: str) -> Optional[RecordedPose]:
        """Find a pose by name (case/whitespace-insensitive). None if unknown."""
        return self._poses.get(canonical_name(raw_name))

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def record(
        self,
        raw_name: str,
        snapshot: LandmarkSnapshot,
        tolerance: Optional[float] = None,
    ) -> RecordedPose:
        """
        Record a new reference pose from a live snapshot and persist it.

        Args:
            raw_name: Display name; stored under its canonical form
            snapshot: Live landmarks at the moment of recording
            tolerance: Per-landmark match distance (default_tolerance if None)

        Returns:
            The stored RecordedPose

        Raises:
            IncompleteSnapshotError: If the snapshot lacks any landmark
            ValueError: If the name is blank or tolerance is negative
        """
        name = canonical_name(raw_name)
        if not name:
            raise ValueError("Pose name must not be blank")

        if snapshot is None or not snapshot.is_complete(self.landmark_count):
            present = 0 if snapshot is None else sum(
                1 for i in range(self.landmark_count) if i in snapshot
            )
            logger.error(f"Can't record pose '{name}': {present}/{self.landmark_count} landmarks present")
            raise IncompleteSnapshotError(present, self.landmark_count)

        tolerance = self.default_tolerance if tolerance is None else float(tolerance)
        if tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}")

        pose = RecordedPose(name=name, landmarks=snapshot, tolerance=tolerance)

        # Persist first: a failed write leaves the registry unchanged
        path = self.store.save(pose)
        replaced = name in self._poses
        self._poses[name] = pose
        self._forget_stale_file(name, path)

        logger.info(
            f"Pose '{name}' {'re-recorded' if replaced else 'recorded'} "
            f"(tolerance={tolerance:.2f}) -> {path}"
        )
        return pose

    def load_all(self) -> int:
        """
        Replace in-memory poses with everything in the pose folder.

        Files are read in lexicographic filename order; when two files
        share a canonical name the later file wins. Unreadable files are
        logged and skipped.

        Returns:
            Number of distinct poses loaded
        """
        self._poses.clear()
        self._paths.clear()
        logger.info(f"Loading poses from '{self.store.directory}'...")

        for path in self.store.list_files():
            try:
                pose = self.store.read(path)
            except PoseRecordError as e:
                logger.error(f"Skipping pose file: {e}")
                continue

            if pose.name in self._poses:
                logger.warning(f"Pose '{pose.name}' from {path.name} overrides an earlier file")
            self._poses[pose.name] = pose
            self._paths[pose.name] = path
            logger.debug(f"Loaded pose '{pose.name}' from {path.name}")

        logger.info(f"Loaded {len(self._poses)} pose(s) from '{self.store.directory}'")
        return len(self._poses)

    def _forget_stale_file(self, name: str, path: Path) -> None:
        """
        Delete the file a pose was loaded from when it now lives elsewhere.

        Pose folders written under an older file naming scheme would
        otherwise shadow the re-recorded pose on the next load_all().
        """
        previous = self._paths.get(name)
        self._paths[name] = path
        if previous is None or previous == path:
            return

        try:
            previous.unlink()
            logger.info(f"Removed superseded pose file {previous.name}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove superseded pose file {previous}: {e}")
