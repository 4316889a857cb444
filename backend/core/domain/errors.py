"""Domain errors raised by registry mutations."""

from typing import Optional


class IncompleteSnapshotError(ValueError):
    """A pose was recorded from a snapshot missing some landmarks."""

    def __init__(self, present: int, required: int):
        self.present = present
        self.required = required
        super().__init__(
            f"Snapshot has {present} of {required} landmarks; cannot record pose"
        )


class PoseRecordError(ValueError):
    """A persisted pose record could not be parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)
