"""
Staging Batch

The review area between extraction and the ledger. Candidates from
several ingestion calls (AI and CSV) pile up here in order; the user
edits or removes them, then confirms or discards the whole batch.

DESIGN DECISION: Every edit goes back through the field normalizer,
so a staged candidate is always well-formed. An invalid edit is refused
and the candidate keeps its previous value.

Nothing here is persisted, and nothing here touches the ledger.
"""

from typing import Any, Callable, Iterable, Iterator

from wealthwise.ingestion.normalizer import (
    DEFAULT_CATEGORY,
    NormalizationError,
    parse_amount,
    parse_date,
    parse_description,
    parse_label,
    parse_type,
    preview,
)
from wealthwise.models.ledger import CandidateTransaction, ResolutionConfidence


class StagingError(Exception):
    """Base exception for staging operations."""
    pass


class CandidateNotFoundError(StagingError):
    """No candidate with that staging id in the batch."""

    def __init__(self, staging_id: str):
        self.staging_id = staging_id
        super().__init__(f"No staged candidate with id {staging_id}")


class InvalidEditError(StagingError):
    """The new value failed normalization."""

    def __init__(self, staging_id: str, field: str, reason: str):
        self.staging_id = staging_id
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field} for {staging_id}: {reason}")


def _parse_edit_date(value: Any):
    parsed = parse_date(value)
    if parsed is None:
        raise NormalizationError("date", f"Unrecognised date: {preview(value)}")
    return parsed


def _parse_account_id(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise NormalizationError("account_id", "Account is required")
    return text


class StagingBatch:
    """Ordered, editable candidates for one ingestion session."""

    def __init__(self, default_category: str = DEFAULT_CATEGORY):
        self._candidates: list[CandidateTransaction] = []
        self._default_category = default_category

        self._editors: dict[str, Callable[[Any], Any]] = {
            "description": parse_description,
            "amount": parse_amount,
            "date": _parse_edit_date,
            "type": parse_type,
            "category": lambda v: parse_label(v, self._default_category),
            "sub_category": lambda v: parse_label(v, self._default_category),
            "account_id": _parse_account_id,
        }

    def add(self, candidates: Iterable[CandidateTransaction]) -> list[str]:
        """Append candidates in order; returns their staging ids."""
        added = list(candidates)
        self._candidates.extend(added)
        return [c.staging_id for c in added]

    def _index(self, staging_id: str) -> int:
        for idx, candidate in enumerate(self._candidates):
            if candidate.staging_id == staging_id:
                return idx
        raise CandidateNotFoundError(staging_id)

    def get(self, staging_id: str) -> CandidateTransaction:
        return self._candidates[self._index(staging_id)]

    def edit(self, staging_id: str, field: str, value: Any) -> CandidateTransaction:
        """
        Change one field of a staged candidate.

        Duplicate detection is not re-run.

        Raises:
            CandidateNotFoundError: Unknown staging id
            InvalidEditError: Field not editable or value invalid
        """
        idx = self._index(staging_id)

        editor = self._editors.get(field)
        if editor is None:
            raise InvalidEditError(staging_id, field, "Field is not editable")

        try:
            parsed = editor(value)
        except NormalizationError as e:
            raise InvalidEditError(staging_id, field, e.reason)

        update: dict[str, Any] = {field: parsed}
        if field == "account_id":
            update["resolution"] = ResolutionConfidence.MANUAL

        updated = self._candidates[idx].model_copy(update=update)
        self._candidates[idx] = updated
        return updated

    def remove(self, staging_id: str) -> CandidateTransaction:
        """Drop a candidate from the batch for good."""
        return self._candidates.pop(self._index(staging_id))

    def list(self) -> list[CandidateTransaction]:
        return list(self._candidates)

    def remove_all(self, staging_ids) -> int:
        """Drop the given candidates; ids no longer staged are ignored."""
        ids = set(staging_ids)
        before = len(self._candidates)
        self._candidates = [c for c in self._candidates if c.staging_id not in ids]
        return before - len(self._candidates)

    def clear(self) -> int:
        count = len(self._candidates)
        self._candidates.clear()
        return count

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[CandidateTransaction]:
        return iter(list(self._candidates))
