"""Contracts for the remote collaborators the session talks to.

The network clients themselves live outside this package; anything with
the matching method can be handed to :class:`WorkoutSession`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol


class AlternativesService(Protocol):
    def get_alternatives(
        self,
        exercise_id: str,
        reason: str,
        allowed_patterns: Optional[list],
        limit: int,
    ) -> list: ...


class ExclusionService(Protocol):
    def exclude(self, exercise_id: str, reason: str, source: str) -> Any: ...


class SaveSessionService(Protocol):
    def save_session(self, payload: dict, meta: dict) -> dict: ...


class CallStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CallState:
    """Loading/success/error tracking for one collaborator call site."""

    status: CallStatus = CallStatus.IDLE
    error: Optional[str] = None
    result: Any = None

    @property
    def loading(self) -> bool:
        return self.status == CallStatus.LOADING

    def begin(self) -> None:
        self.status = CallStatus.LOADING
        self.error = None

    def succeed(self, result=None) -> None:
        self.status = CallStatus.SUCCESS
        self.error = None
        self.result = result

    def fail(self, message: str) -> None:
        self.status = CallStatus.ERROR
        self.error = message

    def reset(self) -> None:
        self.status = CallStatus.IDLE
        self.error = None
        self.result = None


@dataclass
class SaveResult:
    """Acknowledgement returned by the save collaborator."""

    session_id: Optional[str] = None
    progression: Any = None
    progression_job_id: Optional[str] = None
    progression_job_status: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_response(cls, data) -> "SaveResult":
        data = data if isinstance(data, dict) else {}
        session_id = data.get("sessionId")
        job_id = data.get("progressionJobId")
        return cls(
            session_id=session_id if isinstance(session_id, str) else None,
            progression=data.get("progression"),
            progression_job_id=str(job_id) if job_id else None,
            progression_job_status=(
                str(data.get("progressionJobStatus") or "pending") if job_id else None
            ),
            extra=data,
        )
