"""Per-record operation results and the fatal error hierarchy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Outcome(str, Enum):
    SUCCESS = "success"
    RECOVERABLE = "recoverable"


@dataclass(frozen=True)
class OpResult:
    outcome: Outcome
    record_id: str
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @classmethod
    def success(cls, record_id: str, detail: str = "") -> "OpResult":
        return cls(Outcome.SUCCESS, record_id, detail)

    @classmethod
    def recoverable(cls, record_id: str, detail: str) -> "OpResult":
        return cls(Outcome.RECOVERABLE, record_id, detail)


class HygieneError(Exception):
    """Base class for errors that end a run."""


class CredentialsError(HygieneError):
    """The service account key is missing or unusable."""


class StoreReadError(HygieneError):
    """The initial bulk read of the membership collection failed."""
