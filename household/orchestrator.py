"""
Main Orchestrator for Household Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Startup (legacy migration -> start every live collection)
2. Edits that need the current record (goal contributions, debt payments)
3. Reports (budgets, goals, spending ratio) over the current views
4. Backup export and additive import

DESIGN DECISION: The orchestrator enforces the boundaries:
- Views only change through the remote subscription, never directly
- Projections read the views and never write back
- The migration runs before any collection is started

This is the "glue" a UI binds to. It owns no data of its own.
"""

import asyncio
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from household.audit import AuditLogger, get_logger
from household.config import Settings, get_settings
from household.models.analytics import BudgetProjection, GoalProjection, RatioReport
from household.models.audit import AuditEventBuilder
from household.models.records import EntityKind
from household.projections import project_budgets, project_goals, ratio_report
from household.services.cache import (
    JsonFileLocalStore,
    LocalCollectionCache,
    LocalStore,
    MemoryLocalStore,
    MigrationState,
)
from household.services.storage import (
    DELETE_FIELD,
    DocumentStore,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
)
from household.sync import (
    ExportBundle,
    LegacyMigrationRunner,
    MigrationResult,
    SyncedCollection,
    export_bundle,
    import_bundle,
    parse_bundle,
    write_backup,
)


logger = get_logger(__name__)


class HouseholdLedger:
    """
    The six live collections plus everything built on top of them.

    Usage:
        ledger = create_app_components()
        await ledger.startup()
        report = ledger.budget_report()
        await ledger.contribute_to_goal(goal_id, Decimal("500"))
        await ledger.shutdown()
    """

    def __init__(
        self,
        remote: DocumentStore,
        local_store: LocalStore,
        settings: Optional[Settings] = None,
        audit_logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._settings = settings or get_settings()
        self._audit_logger = audit_logger or AuditLogger(
            history_size=self._settings.app.audit_history_size
        )
        key_prefix = self._settings.cache.key_prefix
        self._cache = LocalCollectionCache(
            local_store, key_prefix=key_prefix, audit_logger=self._audit_logger
        )
        self._migration_state = MigrationState(local_store, key_prefix=key_prefix)
        self._collections: dict[str, SyncedCollection] = {
            kind.value: SyncedCollection(
                kind,
                remote,
                self._cache,
                settings=self._settings.sync,
                audit_logger=self._audit_logger,
                sleep=sleep,
            )
            for kind in EntityKind
        }

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    @property
    def collections(self) -> dict[str, SyncedCollection]:
        return dict(self._collections)

    def collection(self, kind: Union[EntityKind, str]) -> SyncedCollection:
        return self._collections[EntityKind(kind).value]

    @property
    def expenses(self) -> SyncedCollection:
        return self._collections[EntityKind.EXPENSES.value]

    @property
    def incomes(self) -> SyncedCollection:
        return self._collections[EntityKind.INCOMES.value]

    @property
    def budgets(self) -> SyncedCollection:
        return self._collections[EntityKind.BUDGETS.value]

    @property
    def debts(self) -> SyncedCollection:
        return self._collections[EntityKind.DEBTS.value]

    @property
    def recurring(self) -> SyncedCollection:
        return self._collections[EntityKind.RECURRING.value]

    @property
    def goals(self) -> SyncedCollection:
        return self._collections[EntityKind.GOALS.value]

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def is_connected(self) -> bool:
        """True only when every collection is live."""
        return all(c.is_connected for c in self._collections.values())

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def startup(self) -> MigrationResult:
        """
        Run the one-shot legacy migration, then start every collection.

        A failed migration does not block startup; it is retried in full
        on the next one.
        """
        runner = LegacyMigrationRunner(
            self._migration_state, self._collections, self._audit_logger
        )
        result = await runner.run()
        if result.failed:
            logger.warning("legacy_migration_failed", error=result.error_message)

        for collection in self._collections.values():
            await collection.start()
        return result

    async def shutdown(self) -> None:
        for collection in self._collections.values():
            await collection.close()

    # -------------------------------------------------------------------------
    # Edits that read the current record first
    # -------------------------------------------------------------------------

    def _require(self, collection: SyncedCollection, record_id: str):
        record = collection.get(record_id)
        if record is None:
            raise NotFoundError(f"{collection.name}/{record_id} not found")
        return record

    @staticmethod
    def _positive(amount: Union[Decimal, int, float, str]) -> Decimal:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")
        return amount

    async def contribute_to_goal(
        self,
        goal_id: str,
        amount: Union[Decimal, int, float, str],
    ) -> Decimal:
        """
        Add savings to a goal. Contributions only ever increase the total.

        Returns:
            The new current amount
        """
        amount = self._positive(amount)
        goal = self._require(self.goals, goal_id)
        new_amount = goal.current_amount + amount
        await self.goals.update(goal_id, {"currentAmount": new_amount})
        return new_amount

    async def pay_debt(
        self,
        debt_id: str,
        amount: Union[Decimal, int, float, str],
    ) -> Decimal:
        """
        Record a payment on a debt. Payments only ever increase the total.

        Returns:
            The new amount paid
        """
        amount = self._positive(amount)
        debt = self._require(self.debts, debt_id)
        new_paid = debt.amount_paid + amount
        await self.debts.update(debt_id, {"amountPaid": new_paid})
        return new_paid

    async def set_recurring_active(self, recurring_id: str, active: bool) -> None:
        """Pause or resume a recurring charge."""
        self._require(self.recurring, recurring_id)
        await self.recurring.update(recurring_id, {"active": bool(active)})

    async def clear_third_party(self, expense_id: str) -> None:
        """Remove the third-party name from an expense entirely."""
        self._require(self.expenses, expense_id)
        await self.expenses.update(expense_id, {"thirdPartyName": DELETE_FIELD})

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def budget_report(self, today: Optional[date] = None) -> list[BudgetProjection]:
        return project_budgets(self.budgets.records, self.expenses.records, today)

    def goal_report(self, today: Optional[date] = None) -> list[GoalProjection]:
        return project_goals(
            self.goals.records,
            self.incomes.records,
            self.expenses.records,
            self.recurring.records,
            today,
        )

    def ratio_report(self) -> RatioReport:
        return ratio_report(self.expenses.records, self.incomes.records)

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    def export_data(self) -> ExportBundle:
        """Snapshot the current views into a backup bundle."""
        bundle = export_bundle(
            expenses=self.expenses.records,
            goals=self.goals.records,
            incomes=self.incomes.records,
            budgets=self.budgets.records,
        )
        self._audit_logger.log(AuditEventBuilder.export_created(bundle.counts()))
        return bundle

    def save_backup(
        self,
        directory: Optional[Path] = None,
        today: Optional[date] = None,
    ) -> Path:
        """Export and write the bundle to the backup directory."""
        directory = directory or Path(self._settings.app.backup_directory)
        return write_backup(self.export_data(), directory, today)

    async def import_data(self, text: str) -> dict[str, int]:
        """
        Validate a backup file and add its records.

        Raises:
            ImportValidationError: If the file is not a supported bundle
            RemoteWriteError: If a write fails part way
        """
        bundle = parse_bundle(text)
        return await import_bundle(bundle, self._collections, self._audit_logger)


def _remote_store(settings: Settings) -> Optional[DocumentStore]:
    try:
        sheets_settings = settings.google_sheets
    except ValidationError as e:
        logger.warning("remote_store_not_configured", error=str(e))
        return None
    if not sheets_settings.spreadsheet_id:
        logger.warning("remote_store_not_configured", reason="no spreadsheet id")
        return None
    # Not connected here: an unreachable sheet degrades the collections
    # onto their cache and they keep resubscribing
    return GoogleSheetsDocumentStore(
        GoogleSheetsClient(sheets_settings),
        poll_interval_seconds=settings.sync.poll_interval_seconds,
    )


def create_app_components(
    use_remote: bool = True,
    settings: Optional[Settings] = None,
    local_store: Optional[LocalStore] = None,
) -> HouseholdLedger:
    """
    Factory function to create the ledger.

    Args:
        use_remote: Whether to sync with Google Sheets. Set to False for
                    testing or demo sessions; an in-memory store is used.
                    A configured sheet is used even while unreachable.
        settings: Settings to use instead of the cached environment ones
        local_store: Durable key-value store for the cache; a JSON file
                     store under the cache directory by default. Never
                     used with the in-memory store, whose empty first
                     snapshot would overwrite it.

    Returns:
        A ledger that still needs startup()
    """
    settings = settings or get_settings()

    remote = _remote_store(settings) if use_remote else None
    if remote is None:
        remote = InMemoryDocumentStore()
        if not isinstance(local_store, MemoryLocalStore):
            if local_store is not None:
                logger.warning("durable_cache_skipped", reason="in-memory remote store")
            local_store = MemoryLocalStore()
    elif local_store is None:
        local_store = JsonFileLocalStore(settings.cache.path)

    return HouseholdLedger(remote, local_store, settings=settings)
