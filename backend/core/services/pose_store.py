"""
Pose Store

Reads and writes recorded poses as JSON files, one file per pose.

Files are written as a native index -> position map:

    {
        "poseName": "arms up",
        "landmarks": {"0": {"x": 0.1, "y": 1.6, "z": 0.0}, ...},
        "tolerance": 0.15
    }

Older pose folders used two parallel arrays instead of a map
("landmarkKeys" + "landmarkValues"); those files are still readable.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..domain.errors import PoseRecordError
from ..domain.pose import LandmarkSnapshot, RecordedPose, canonical_name

logger = logging.getLogger(__name__)


class PositionRecord(BaseModel):
    """A serialized 3D position."""
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float
    z: float


class PoseRecord(BaseModel):
    """
    On-disk shape of a recorded pose.

    Exactly one landmark encoding must be present: the "landmarks" map,
    or the legacy "landmarkKeys"/"landmarkValues" pair of equal length.
    """
    model_config = ConfigDict(populate_by_name=True)

    pose_name: str = Field(..., alias="poseName")
    landmarks: Optional[dict[int, PositionRecord]] = None
    landmark_keys: Optional[list[int]] = Field(None, alias="landmarkKeys")
    landmark_values: Optional[list[PositionRecord]] = Field(None, alias="landmarkValues")
    tolerance: float = Field(..., ge=0.0)

    @model_validator(mode="after")
    def _check_landmark_encoding(self) -> "PoseRecord":
        if self.landmarks is not None:
            return self
        if self.landmark_keys is None or self.landmark_values is None:
            raise ValueError("record has neither 'landmarks' nor 'landmarkKeys'/'landmarkValues'")
        if len(self.landmark_keys) != len(self.landmark_values):
            raise ValueError(
                f"landmarkKeys has {len(self.landmark_keys)} entries "
                f"but landmarkValues has {len(self.landmark_values)}"
            )
        return self

    def positions(self) -> dict[int, tuple[float, float, float]]:
        """Index -> (x, y, z), whichever encoding the record used."""
        if self.landmarks is not None:
            items = self.landmarks.items()
        else:
            items = zip(self.landmark_keys or [], self.landmark_values or [])
        return {index: (p.x, p.y, p.z) for index, p in items}

    @classmethod
    def from_pose(cls, pose: RecordedPose) -> "PoseRecord":
        return cls(
            pose_name=pose.name,
            landmarks={
                index: PositionRecord(x=x, y=y, z=z)
                for index, (x, y, z) in pose.landmarks.to_dict().items()
            },
            tolerance=pose.tolerance,
        )


class PoseStore:
    """
    Directory of pose JSON files.

    Usage:
        store = PoseStore("data/poses")
        store.save(pose)
        for path in store.list_files():
            pose = store.read(path)
    """

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def ensure_directory(self) -> None:
        if not self.directory.exists():
            logger.info(f"Creating pose directory at {self.directory}")
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        """
        File path for a pose name, e.g. 'Pose A' -> <dir>/pose%20a.json.

        The file name is the percent-encoded canonical name, so distinct
        poses ("arms up", "arms_up", "arms/up") never share a file.
        """
        key = canonical_name(name)
        if not key:
            raise ValueError(f"Cannot derive a file name from pose name {name!r}")
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def list_files(self) -> list[Path]:
        """
        Pose files in lexicographic filename order.

        The order is part of the load contract: when two files hold the
        same canonical pose name, the later one wins.
        """
        if not self.directory.is_dir():
            return []
        return sorted(
            (p for p in self.directory.iterdir() if p.is_file() and p.suffix == self.SUFFIX),
            key=lambda p: p.name,
        )

    def save(self, pose: RecordedPose) -> Path:
        """Write a pose to its file, replacing any previous version."""
        self.ensure_directory()
        path = self.path_for(pose.name)
        payload = PoseRecord.from_pose(pose).model_dump_json(
            by_alias=True, exclude_none=True, indent=2
        )

        # Write to a sibling temp file first so a crash never leaves half a record
        fd, temp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as temp_file:
                temp_file.write(payload)
            os.replace(temp_name, path)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise

        logger.debug(f"Wrote pose '{pose.name}' to {path}")
        return path

    def read(self, path: Union[str, Path]) -> RecordedPose:
        """
        Parse one pose file.

        Raises:
            PoseRecordError: If the file can't be read or isn't a valid record
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise PoseRecordError(f"could not read file ({e})", str(path)) from e

        try:
            record = PoseRecord.model_validate_json(text)
        except ValidationError as e:
            raise PoseRecordError(f"invalid pose record ({e.error_count()} errors)", str(path)) from e

        name = canonical_name(record.pose_name)
        if not name:
            raise PoseRecordError("pose name is empty", str(path))

        try:
            landmarks = LandmarkSnapshot(record.positions())
        except ValueError as e:
            raise PoseRecordError(str(e), str(path)) from e

        return RecordedPose(name=name, landmarks=landmarks, tolerance=record.tolerance)
