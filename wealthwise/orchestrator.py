"""
Main Orchestrator for WealthWise

This module ties together all the components and defines the
end-to-end ingestion flow:

    text  -> extract ─┐
                      ├─> normalize -> resolve account -> flag duplicates -> stage
    CSV   -> parse  ──┘
    stage -> (user edits / removes) -> confirm -> commit -> ledger + balances

DESIGN DECISION: The orchestrator enforces the boundaries:
- No transaction reaches the ledger without the user confirming the batch
- Ingestion requests in one session run one at a time
- A late extraction response for a discarded batch is dropped
- Every step is audited under the session's correlation id

This is the "glue" that keeps the pipeline honest even when the
extraction service behaves unexpectedly.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from wealthwise.agents import TransactionExtractionAgent
from wealthwise.audit import AuditLogger, create_correlation_id
from wealthwise.config import LedgerSettings, get_settings
from wealthwise.ingestion import AccountResolver, DuplicateDetector, parse_csv
from wealthwise.ledger import (
    AccountDirectory,
    CommitFailure,
    LedgerStore,
    ReconciliationCommitter,
)
from wealthwise.models.audit import AuditEventBuilder
from wealthwise.models.ledger import (
    CandidateTransaction,
    CommitResult,
    ExtractionStatus,
    NormalizationRejection,
    ResolutionConfidence,
)
from wealthwise.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from wealthwise.staging import StagingBatch


logger = structlog.get_logger(__name__)


class IngestionReport(BaseModel):
    """What one ingestion call added to the staging batch."""

    staged_ids: list[str] = Field(default_factory=list)
    duplicate_count: int = 0
    defaulted_count: int = 0
    rejections: list[NormalizationRejection] = Field(default_factory=list)
    skipped_rows: int = 0
    extraction_status: Optional[ExtractionStatus] = None
    discarded: bool = Field(
        default=False,
        description="The batch was discarded while this request was in flight"
    )
    message: str = ""

    @property
    def staged_count(self) -> int:
        return len(self.staged_ids)


class IngestionSession:
    """
    One user's ingestion session.

    Flow:
    1. Ingest → text through the extraction agent, or CSV through the parser
    2. Stage → resolve accounts, flag duplicates, append to the batch
    3. Review → user edits or removes candidates (PAUSE)
    4. Confirm → committer applies the whole batch atomically
       (or Discard → the batch is dropped, nothing touches the ledger)

    Confirmation (step 4) is MANDATORY.
    The session NEVER commits on its own.
    """

    def __init__(
        self,
        store: LedgerStore,
        committer: Optional[ReconciliationCommitter] = None,
        agent: Optional[TransactionExtractionAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        correlation_id: Optional[UUID] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._committer = committer or ReconciliationCommitter(
            store, audit_logger=self._audit, settings=self._settings
        )
        self._agent = agent
        self._resolver = AccountResolver()
        self._detector = DuplicateDetector(self._settings.duplicate_amount_tolerance)

        self.correlation_id = correlation_id or create_correlation_id()
        self.batch = StagingBatch(default_category=self._settings.default_category)

        self._ingest_lock = asyncio.Lock()
        self._generation = 0

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    async def ingest_text(self, text: str, today: Optional[date] = None) -> IngestionReport:
        """
        Extract candidates from free text and stage them.

        Never raises for extraction problems: a failed extraction is
        reported in the returned report with nothing staged.
        """
        if not text or not text.strip():
            return IngestionReport(message="Nothing to extract: the text is empty.")
        if self._agent is None:
            return IngestionReport(
                extraction_status=ExtractionStatus.FAILURE,
                message="Text extraction isn't configured. Use CSV import instead.",
            )

        async with self._ingest_lock:
            generation = self._generation
            outcome = await self._agent.extract(
                text,
                accounts=self._store.accounts(),
                categories=self._store.categories,
                today=today,
                default_category=self._settings.default_category,
            )

            if generation != self._generation:
                await self._audit.log(AuditEventBuilder.extraction_discarded(
                    candidate_count=len(outcome.candidates),
                    correlation_id=self.correlation_id,
                ))
                return IngestionReport(
                    extraction_status=outcome.status,
                    discarded=True,
                    message="The batch was discarded; this extraction was dropped.",
                )

            if not outcome.succeeded:
                await self._audit.log(AuditEventBuilder.extraction_failed(
                    attempts=outcome.attempts,
                    error_message=outcome.error_message,
                    correlation_id=self.correlation_id,
                ))
                return IngestionReport(
                    extraction_status=outcome.status,
                    message="Couldn't read any transactions from that. Please rephrase or try again.",
                )

            await self._audit.log(AuditEventBuilder.extraction_completed(
                status=outcome.status.value,
                candidate_count=len(outcome.candidates),
                rejected_count=len(outcome.rejections),
                attempts=outcome.attempts,
                correlation_id=self.correlation_id,
            ))
            await self._log_rejections(outcome.rejections)

            report = await self._stage(outcome.candidates)
            report.rejections = outcome.rejections
            report.extraction_status = outcome.status
            report.message = self._summary(report)
            return report

    async def ingest_csv(self, csv_text: str, today: Optional[date] = None) -> IngestionReport:
        """Parse a bulk-import CSV and stage its rows."""
        async with self._ingest_lock:
            parsed = parse_csv(
                csv_text,
                today=today,
                default_category=self._settings.default_category,
                sub_category=self._settings.csv_sub_category,
            )
            await self._audit.log(AuditEventBuilder.csv_imported(
                row_count=len(parsed.candidates) + len(parsed.rejections),
                skipped_rows=parsed.skipped_rows,
                correlation_id=self.correlation_id,
            ))
            await self._log_rejections(parsed.rejections)

            report = await self._stage(parsed.candidates)
            report.rejections = parsed.rejections
            report.skipped_rows = parsed.skipped_rows
            report.message = self._summary(report)
            return report

    async def _log_rejections(self, rejections: Iterable[NormalizationRejection]) -> None:
        for rejection in rejections:
            await self._audit.log(AuditEventBuilder.candidate_rejected(
                field=rejection.field,
                reason=rejection.reason,
                correlation_id=self.correlation_id,
            ))

    async def _stage(self, candidates: list[CandidateTransaction]) -> IngestionReport:
        """Resolve and duplicate-check against one ledger snapshot, then stage."""
        snapshot = self._store.snapshot()
        staged: list[CandidateTransaction] = []

        for candidate in candidates:
            resolution = self._resolver.resolve(candidate.account_hint, snapshot.accounts)
            warnings = list(candidate.warnings)
            note = self._resolver.warning_for(candidate.account_hint, resolution)
            if note:
                warnings.append(note)

            resolved = candidate.model_copy(update={
                "account_id": resolution.account_id,
                "resolution": resolution.confidence,
            })
            check = self._detector.detect(resolved, snapshot.transactions)
            if check.warning:
                warnings.append(check.warning)

            staged.append(resolved.model_copy(update={
                "is_duplicate": check.is_duplicate,
                "duplicate_warning": check.warning,
                "warnings": warnings,
            }))

        report = IngestionReport(
            staged_ids=self.batch.add(staged),
            duplicate_count=sum(1 for c in staged if c.is_duplicate),
            defaulted_count=sum(
                1 for c in staged
                if c.resolution != ResolutionConfidence.MATCHED
            ),
        )
        if staged:
            await self._audit.log(AuditEventBuilder.candidates_staged(
                staging_ids=report.staged_ids,
                duplicate_count=report.duplicate_count,
                defaulted_count=report.defaulted_count,
                correlation_id=self.correlation_id,
            ))
        return report

    @staticmethod
    def _summary(report: IngestionReport) -> str:
        parts = [f"{report.staged_count} transaction(s) ready for review"]
        if report.duplicate_count:
            parts.append(f"{report.duplicate_count} possible duplicate(s)")
        if report.defaulted_count:
            parts.append(f"{report.defaulted_count} need an account check")
        if report.rejections:
            parts.append(f"{len(report.rejections)} dropped as invalid")
        if report.skipped_rows:
            parts.append(f"{report.skipped_rows} row(s) skipped")
        return ", ".join(parts) + "."

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    async def edit_candidate(self, staging_id: str, field: str, value: Any) -> CandidateTransaction:
        """
        Edit one field of a staged candidate.

        Raises:
            StagingError: Unknown id, or a value that fails normalization
        """
        candidate = self.batch.edit(staging_id, field, value)
        await self._audit.log(AuditEventBuilder.candidate_edited(
            staging_id=staging_id,
            field=field,
            correlation_id=self.correlation_id,
        ))
        return candidate

    async def remove_candidate(self, staging_id: str) -> CandidateTransaction:
        """Drop a candidate from the batch; the ledger is untouched."""
        candidate = self.batch.remove(staging_id)
        await self._audit.log(AuditEventBuilder.candidate_removed(
            staging_id=staging_id,
            correlation_id=self.correlation_id,
        ))
        return candidate

    async def discard(self) -> int:
        """
        Drop the whole batch.

        An extraction still in flight is not cancelled, but its result
        will be dropped when it arrives.
        """
        self._generation += 1
        count = self.batch.clear()
        await self._audit.log(AuditEventBuilder.batch_discarded(
            candidate_count=count,
            correlation_id=self.correlation_id,
        ))
        return count

    # -------------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------------

    async def confirm(self) -> tuple[Optional[CommitResult], str]:
        """
        Commit the staged batch.

        CRITICAL: This is called ONLY after explicit user confirmation.

        Returns:
            (result, user_message); result is None when the commit was
            rejected, in which case the batch is still staged
        """
        async with self._ingest_lock:
            if len(self.batch) == 0:
                return CommitResult(), "Nothing to confirm."

            try:
                result = await self._committer.commit(
                    self.batch, correlation_id=self.correlation_id
                )
            except CommitFailure as e:
                return None, f"Nothing was saved: {e.message}"

        return result, f"Saved {len(result.transactions)} transaction(s)."


@dataclass
class AppComponents:
    """Everything a front end needs, wired together."""
    store: LedgerStore
    accounts: AccountDirectory
    committer: ReconciliationCommitter
    session: IngestionSession
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient] = None


async def create_app_components(
    use_storage: bool = True,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for running without storage.

    Falls back to in-memory storage when Google Sheets isn't configured,
    and to CSV-only ingestion when Gemini isn't.
    """
    sheets_client = None
    ledger_storage: LedgerStorageInterface = InMemoryLedgerStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    try:
        agent = TransactionExtractionAgent()
    except Exception as e:
        logger.warning("extraction_not_configured", error=str(e))
        agent = None

    settings = get_settings().ledger
    store = await LedgerStore.load(ledger_storage)
    committer = ReconciliationCommitter(store, audit_logger=audit_logger, settings=settings)

    return AppComponents(
        store=store,
        accounts=AccountDirectory(store, audit_logger=audit_logger),
        committer=committer,
        session=IngestionSession(
            store,
            committer=committer,
            agent=agent,
            audit_logger=audit_logger,
            settings=settings,
        ),
        audit_logger=audit_logger,
        sheets_client=sheets_client,
    )
