from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class FailureKind(str, Enum):
    OPEN = "open"
    SEEK = "seek"
    FETCH = "fetch"
    CALIBRATION = "calibration"
    FORMAT_MISMATCH = "format_mismatch"
    MISSING_SAMPLE = "missing_sample"
    DECODE = "decode"
    BUFFER_ALLOCATION = "buffer_allocation"
    TRANSFORM = "transform"
    WRITE = "write"


class StepAction(str, Enum):
    OK = "ok"
    SKIP_FRAME = "skip_frame"
    ABORT_RUN = "abort_run"


# Session-level and output failures end the run. Problems with a single
# color sample only drop that frame.
FAILURE_POLICY = {
    FailureKind.OPEN: StepAction.ABORT_RUN,
    FailureKind.SEEK: StepAction.ABORT_RUN,
    FailureKind.FETCH: StepAction.ABORT_RUN,
    FailureKind.CALIBRATION: StepAction.ABORT_RUN,
    FailureKind.FORMAT_MISMATCH: StepAction.SKIP_FRAME,
    FailureKind.MISSING_SAMPLE: StepAction.SKIP_FRAME,
    FailureKind.DECODE: StepAction.SKIP_FRAME,
    FailureKind.BUFFER_ALLOCATION: StepAction.ABORT_RUN,
    FailureKind.TRANSFORM: StepAction.ABORT_RUN,
    FailureKind.WRITE: StepAction.ABORT_RUN,
}


class StepFailure(Exception):
    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = FailureKind(kind)
        self.message = message

    @property
    def action(self) -> StepAction:
        return FAILURE_POLICY[self.kind]

    def __str__(self):
        return f"{self.kind.value}: {self.message}"


@dataclass
class StepResult:
    """Outcome of processing one frame"""
    action: StepAction
    kind: Optional[FailureKind] = None
    message: str = ""
    artifacts: List = field(default_factory=list)

    @classmethod
    def ok(cls, artifacts=None) -> "StepResult":
        return cls(StepAction.OK, artifacts=list(artifacts or []))

    @classmethod
    def from_failure(cls, failure: StepFailure) -> "StepResult":
        return cls(failure.action, failure.kind, failure.message)
