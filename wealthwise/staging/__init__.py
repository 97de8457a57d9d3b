"""Staging package."""

from wealthwise.staging.batch import (
    CandidateNotFoundError,
    InvalidEditError,
    StagingBatch,
    StagingError,
)

__all__ = [
    "CandidateNotFoundError",
    "InvalidEditError",
    "StagingBatch",
    "StagingError",
]
