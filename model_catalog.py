#!/usr/bin/env python3
"""
Model catalog: the `models` collection, keyed by sanitized model id.

Holds the sync engine that upserts provider candidates into the catalog and
the one-time migration of legacy `isActive` documents to the `status` field.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional

from pymongo.errors import PyMongoError

from errors import PersistenceError
from generation.providers import ModelCandidate, categorize_model_type

# Documents written at this version carry `status` only, never `isActive`
SCHEMA_VERSION = 2

EDITABLE_FIELDS = ("name", "description", "provider", "type")


class ModelStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


def sanitize_model_id(original_id: str) -> str:
    """Make a provider model id safe to use as a document key."""
    return original_id.replace("/", "-")


def status_of(doc: dict) -> str:
    """Status of a catalog document, reading the legacy flag if not yet migrated."""
    status = doc.get("status")
    if status in (ModelStatus.ACTIVE.value, ModelStatus.INACTIVE.value):
        return status
    return ModelStatus.ACTIVE.value if doc.get("isActive") is True else ModelStatus.INACTIVE.value


def model_helper(doc) -> dict:
    """Convert a catalog document to its API shape"""
    return {
        "id": doc["_id"],
        "originalId": doc.get("originalId") or doc["_id"],
        "name": doc.get("name") or "Unnamed Model",
        "description": doc.get("description") or "",
        "provider": doc.get("provider") or "Unknown",
        "type": doc.get("type") or "text",
        "status": status_of(doc),
        "source": doc.get("source"),
        "createdAt": doc.get("createdAt"),
        "updatedAt": doc.get("updatedAt"),
    }


# --- Sync engine ---

@dataclass
class SyncReport:
    source: str
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    collisions: List[Dict[str, str]] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return len(self.created) + len(self.updated)

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "synced": self.synced,
            "created": self.created,
            "updated": self.updated,
            "collisions": self.collisions,
            "failed": self.failed,
        }


def sync_models(db, candidates: Iterable[ModelCandidate], source: str) -> SyncReport:
    """
    Upsert provider candidates into the catalog by sanitized id.

    New entries start inactive. Existing entries get their metadata refreshed
    but keep whatever status an admin gave them. A candidate whose sanitized
    id is already taken by a different original id is skipped. Writes happen
    one at a time; a failed write is logged and the run continues.
    """
    report = SyncReport(source=source)

    for candidate in candidates:
        sanitized_id = sanitize_model_id(candidate.original_id)
        now = datetime.utcnow()
        fields = {
            "name": candidate.name,
            "description": candidate.description or f"Model: {candidate.name}",
            "provider": candidate.provider or source,
            "type": candidate.type or categorize_model_type(candidate.name, candidate.description),
            "source": source,
        }

        try:
            existing = db.models.find_one({"_id": sanitized_id})

            if existing:
                existing_original = existing.get("originalId")
                if existing_original and existing_original != candidate.original_id:
                    print(f"[model_sync] Collision on {sanitized_id}: {candidate.original_id} vs {existing_original}, skipped")
                    report.collisions.append({
                        "id": sanitized_id,
                        "originalId": candidate.original_id,
                        "existingOriginalId": existing_original,
                    })
                    continue

                update = dict(fields, updatedAt=now)
                if not existing_original:
                    update["originalId"] = candidate.original_id
                db.models.update_one({"_id": sanitized_id}, {"$set": update})
                report.updated.append(sanitized_id)
                print(f"[model_sync] Updated model: {candidate.name} (ID: {sanitized_id})")
            else:
                db.models.insert_one(dict(
                    fields,
                    _id=sanitized_id,
                    originalId=candidate.original_id,
                    status=ModelStatus.INACTIVE.value,
                    schemaVersion=SCHEMA_VERSION,
                    createdAt=now,
                    updatedAt=now,
                ))
                report.created.append(sanitized_id)
                print(f"[model_sync] Added new model: {candidate.name} (ID: {sanitized_id})")

        except PyMongoError as e:
            print(f"[model_sync] ERROR: {candidate.original_id}: {e}")
            report.failed.append({"originalId": candidate.original_id, "error": str(e)})

    print(f"[model_sync] Synced {report.synced} models from {source} "
          f"({len(report.collisions)} collisions, {len(report.failed)} failures)")
    return report


# --- Legacy status migration ---

@dataclass
class MigrationReport:
    migrated: List[str] = field(default_factory=list)
    skipped: int = 0
    failed: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "migrated": len(self.migrated),
            "migratedIds": self.migrated,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def migrate_model_status(db) -> MigrationReport:
    """
    Move every catalog entry to schema version 2.

    Entries without `status` get it from the legacy `isActive` flag; the flag
    itself is removed. Entries already at version 2 are skipped, so a second
    run writes nothing.
    """
    report = MigrationReport()

    for doc in list(db.models.find()):
        if doc.get("schemaVersion", 1) >= SCHEMA_VERSION:
            report.skipped += 1
            continue

        status = status_of(doc)
        try:
            db.models.update_one(
                {"_id": doc["_id"]},
                {
                    "$set": {
                        "status": status,
                        "schemaVersion": SCHEMA_VERSION,
                        "statusMigratedAt": datetime.utcnow(),
                    },
                    "$unset": {"isActive": ""},
                },
            )
            report.migrated.append(doc["_id"])
            print(f"[migrate] OK: {doc['_id']} -> status: {status}")
        except PyMongoError as e:
            print(f"[migrate] ERROR: {doc['_id']}: {e}")
            report.failed.append({"id": doc["_id"], "error": str(e)})

    print(f"[migrate] Migrated: {len(report.migrated)}  Skipped: {report.skipped}  Errors: {len(report.failed)}")
    return report


# --- Catalog reads ---

def list_models(db) -> List[dict]:
    return [model_helper(doc) for doc in db.models.find()]


def get_model(db, model_id: str) -> Optional[dict]:
    doc = db.models.find_one({"_id": model_id})
    return model_helper(doc) if doc else None


def get_active_models(db, model_type: Optional[str] = None) -> List[dict]:
    query = {"status": ModelStatus.ACTIVE.value}
    if model_type:
        query["type"] = model_type
    return [model_helper(doc) for doc in db.models.find(query)]


def get_model_by_original_id(db, original_id: str) -> Optional[dict]:
    doc = db.models.find_one({"originalId": original_id})
    return model_helper(doc) if doc else None


def get_sanitized_id(db, original_id: str) -> str:
    model = get_model_by_original_id(db, original_id)
    return model["id"] if model else sanitize_model_id(original_id)


def get_original_id(db, sanitized_id: str) -> str:
    model = get_model(db, sanitized_id)
    return model["originalId"] if model else sanitized_id


# --- Catalog writes (admin edits) ---

def create_model(db, original_id: str, name: str, model_type: str, provider: str,
                 description: Optional[str] = None, status: str = ModelStatus.INACTIVE.value) -> dict:
    sanitized_id = sanitize_model_id(original_id)
    now = datetime.utcnow()
    doc = {
        "_id": sanitized_id,
        "originalId": original_id,
        "name": name,
        "description": description or f"Model: {name}",
        "provider": provider,
        "type": model_type,
        "status": ModelStatus(status).value,
        "source": "manual",
        "schemaVersion": SCHEMA_VERSION,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        db.models.insert_one(doc)
    except PyMongoError as e:
        raise PersistenceError(f"Failed to create model {sanitized_id}: {e}") from e
    return model_helper(doc)


def update_model(db, model_id: str, changes: dict) -> Optional[dict]:
    update = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
    update["updatedAt"] = datetime.utcnow()
    try:
        result = db.models.update_one({"_id": model_id}, {"$set": update})
    except PyMongoError as e:
        raise PersistenceError(f"Failed to update model {model_id}: {e}") from e
    if result.matched_count == 0:
        return None
    return get_model(db, model_id)


def set_model_status(db, model_id: str, status: str) -> Optional[dict]:
    status = ModelStatus(status).value
    try:
        result = db.models.update_one(
            {"_id": model_id},
            {"$set": {"status": status, "updatedAt": datetime.utcnow()}},
        )
    except PyMongoError as e:
        raise PersistenceError(f"Failed to update model status for {model_id}: {e}") from e
    if result.matched_count == 0:
        return None
    print(f"[models] Model {model_id} {'enabled' if status == 'active' else 'disabled'} (status: {status})")
    return get_model(db, model_id)


def delete_model(db, model_id: str) -> bool:
    try:
        result = db.models.delete_one({"_id": model_id})
    except PyMongoError as e:
        raise PersistenceError(f"Failed to delete model {model_id}: {e}") from e
    return result.deleted_count > 0
