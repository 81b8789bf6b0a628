"""
Legacy Migration Runner

Before the app synchronized with a remote store, expenses and goals lived
only on the device under the deprecated keys "<prefix>-expenses" and
"<prefix>-goals". This module replays that data into the remote store,
exactly once per installation.

GUARANTEES:
- Runs only when the "migration complete" marker is absent AND legacy
  data exists; otherwise performs zero writes
- Writes through the same add() path as a normal user edit
- Deletes legacy data and sets the marker only after EVERY write succeeded
- On failure leaves legacy data and marker untouched, so the next startup
  retries in full

KNOWN TRADEOFF: a retry after a partial failure re-adds the records that
did make it the first time, producing duplicates. This is deliberate:
duplicates are visible and deletable, lost records are not. Do not add
content-based dedup here; two identical expenses on the same day are
legitimate.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from household.audit import AuditLogger
from household.models.audit import AuditEventBuilder
from household.normalization import to_timestamp
from household.services.cache import LEGACY_KINDS, MigrationState
from household.services.storage import RemoteWriteError
from household.sync.collection import SyncedCollection


class MigrationPartialFailure(Exception):
    """Some legacy records could not be replayed. Legacy data was kept."""

    def __init__(self, message: str, written: dict[str, int]):
        self.written = written
        super().__init__(message)


class MigrationResult(BaseModel):
    """Outcome of one migration run."""

    migrated: bool = Field(
        default=False,
        description="True when legacy data was replayed and cleared"
    )
    skipped_reason: Optional[str] = None
    counts: dict[str, int] = Field(default_factory=dict)
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_message is not None


class LegacyMigrationRunner:
    """
    One-shot replay of pre-sync local data into the remote collections.

    Call run() once at startup, before the first render.
    """

    def __init__(
        self,
        state: MigrationState,
        collections: Mapping[str, SyncedCollection],
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            state: Access to the marker and the legacy keys
            collections: Target collections keyed by name; must include
                every legacy kind ("expenses", "goals")
            audit_logger: Where to record the outcome
        """
        self._state = state
        self._collections = collections
        self._audit_logger = audit_logger or AuditLogger()

    def _skip(self, reason: str) -> MigrationResult:
        self._audit_logger.log(AuditEventBuilder.migration_skipped(reason))
        return MigrationResult(skipped_reason=reason)

    async def run(self) -> MigrationResult:
        if self._state.is_complete():
            return self._skip("already_migrated")
        if not self._state.has_legacy_data():
            return self._skip("no_legacy_data")

        legacy = {kind: self._state.load_legacy(kind) for kind in LEGACY_KINDS}
        if not any(legacy.values()):
            # Keys exist but hold nothing usable
            self._state.clear_legacy()
            self._state.mark_complete()
            return self._skip("legacy_data_empty")

        counts = {kind: 0 for kind in LEGACY_KINDS}
        try:
            for kind, items in legacy.items():
                target = self._collections[kind]
                for item in items:
                    if not isinstance(item, dict):
                        continue
                    await self._replay(target, item)
                    counts[kind] += 1
        except RemoteWriteError as e:
            failure = MigrationPartialFailure(str(e), dict(counts))
            self._audit_logger.log(AuditEventBuilder.migration_failed(failure, counts))
            return MigrationResult(counts=counts, error_message=str(failure))

        self._state.clear_legacy()
        self._state.mark_complete()
        self._audit_logger.log(AuditEventBuilder.migration_completed(counts))
        return MigrationResult(migrated=True, counts=counts)

    @staticmethod
    async def _replay(target: SyncedCollection, item: dict[str, Any]) -> str:
        """Add one legacy record without its old local id."""
        document = {key: value for key, value in item.items() if key != "id"}
        # Best effort: keep the original creation time when it parses
        created_at = to_timestamp(document.get("createdAt"))
        return await target.add(document, created_at=created_at)
