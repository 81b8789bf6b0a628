"""
Export / Import of Backup Bundles

A bundle is a single versioned JSON document holding the four core
collections. It is the persisted backup file format.

DESIGN DECISION: Import is ADDITIVE. Every record is replayed through the
normal add() path and gets a new id; nothing is overwritten or deleted.
Importing the same file twice therefore creates duplicates, which is the
safe failure mode for a backup tool.
"""

import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from household.audit import AuditLogger
from household.models.audit import AuditEventBuilder
from household.models.records import DATA_SCHEMA_VERSION, Record, dump_record
from household.sync.collection import SyncedCollection


BUNDLE_COLLECTIONS = ("expenses", "goals", "incomes", "budgets")

# Versions this build knows how to read
SUPPORTED_VERSIONS = {DATA_SCHEMA_VERSION}

# Assigned again by the store on import
_IMPORT_DROPPED_FIELDS = ("id", "createdAt", "updatedAt", "schemaVersion")


class ImportValidationError(ValueError):
    """The file is not a bundle this version can import."""
    pass


class ExportBundle(BaseModel):
    """The backup file format."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field(..., alias="schemaVersion")
    exported_at: datetime = Field(..., alias="exportedAt")
    expenses: list[dict[str, Any]] = Field(default_factory=list)
    goals: list[dict[str, Any]] = Field(default_factory=list)
    incomes: list[dict[str, Any]] = Field(default_factory=list)
    budgets: list[dict[str, Any]] = Field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in BUNDLE_COLLECTIONS}


def _dump_all(records: Iterable[Any]) -> list[dict[str, Any]]:
    dumped = []
    for record in records:
        if isinstance(record, Record):
            dumped.append(dump_record(record))
        elif isinstance(record, Mapping):
            dumped.append(json.loads(json.dumps(dict(record), default=str)))
    return dumped


def export_bundle(
    expenses: Iterable[Any] = (),
    goals: Iterable[Any] = (),
    incomes: Iterable[Any] = (),
    budgets: Iterable[Any] = (),
    exported_at: Optional[datetime] = None,
) -> ExportBundle:
    """Snapshot the given views into a bundle."""
    return ExportBundle(
        schema_version=DATA_SCHEMA_VERSION,
        exported_at=exported_at or datetime.now(timezone.utc),
        expenses=_dump_all(expenses),
        goals=_dump_all(goals),
        incomes=_dump_all(incomes),
        budgets=_dump_all(budgets),
    )


def bundle_to_json(bundle: ExportBundle) -> str:
    return bundle.model_dump_json(by_alias=True, indent=2)


def write_backup(
    bundle: ExportBundle,
    directory: Path,
    today: Optional[date] = None,
) -> Path:
    """Write a bundle as household-backup-YYYY-MM-DD.json and return the path."""
    today = today or date.today()
    target = Path(directory) / f"household-backup-{today.isoformat()}.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open('w', encoding='utf-8') as handle:
        handle.write(bundle_to_json(bundle))
    return target


def parse_bundle(text: str) -> ExportBundle:
    """
    Parse and validate a backup file.

    Accepts the legacy "dataVersion" tag of older exports.

    Raises:
        ImportValidationError: If the text is not a supported bundle
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ImportValidationError(f"Backup is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ImportValidationError("Backup must be a JSON object")

    if "schemaVersion" not in data and "dataVersion" in data:
        data["schemaVersion"] = data.pop("dataVersion")
    version = data.get("schemaVersion")
    if not version:
        raise ImportValidationError("Backup has no schema version")
    if version not in SUPPORTED_VERSIONS:
        raise ImportValidationError(f"Unsupported schema version: {version}")
    data.setdefault("exportedAt", datetime.now(timezone.utc).isoformat())

    if not isinstance(data.get("expenses"), list):
        raise ImportValidationError("Backup has no expenses array")
    for name in BUNDLE_COLLECTIONS:
        value = data.get(name, [])
        if not isinstance(value, list):
            raise ImportValidationError(f"'{name}' must be an array")
        if not all(isinstance(item, dict) for item in value):
            raise ImportValidationError(f"'{name}' must only hold objects")

    try:
        return ExportBundle.model_validate(data)
    except ValidationError as e:
        raise ImportValidationError(f"Malformed backup: {e}")


async def import_bundle(
    bundle: ExportBundle,
    collections: Mapping[str, SyncedCollection],
    audit_logger: Optional[AuditLogger] = None,
) -> dict[str, int]:
    """
    Replay every record of a bundle through add().

    Records get new ids and new creation times. A RemoteWriteError stops
    the import and propagates; records added before it stay.

    Returns:
        Number of records added per collection
    """
    counts = {}
    for name in BUNDLE_COLLECTIONS:
        target = collections[name]
        added = 0
        for item in getattr(bundle, name):
            document = {
                key: value for key, value in item.items()
                if key not in _IMPORT_DROPPED_FIELDS
            }
            await target.add(document)
            added += 1
        counts[name] = added
    if audit_logger:
        audit_logger.log(AuditEventBuilder.import_completed(counts))
    return counts
