from datetime import datetime

import pytest
from pymongo.errors import PyMongoError

import model_catalog
from generation.providers import ModelCandidate, categorize_model_type
from model_catalog import migrate_model_status, sanitize_model_id, sync_models


class FailingInserts:
    """Collection wrapper whose insert fails for one document id."""

    def __init__(self, collection, bad_id):
        self.collection = collection
        self.bad_id = bad_id

    def insert_one(self, doc):
        if doc["_id"] == self.bad_id:
            raise PyMongoError("write failed")
        return self.collection.insert_one(doc)

    def __getattr__(self, name):
        return getattr(self.collection, name)


class CountingWrites:
    def __init__(self, collection):
        self.collection = collection
        self.writes = 0

    def update_one(self, *args, **kwargs):
        self.writes += 1
        return self.collection.update_one(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.collection, name)


class Wrapped:
    def __init__(self, models):
        self.models = models


def candidate(original_id, name, **kwargs):
    return ModelCandidate(original_id=original_id, name=name, provider=kwargs.pop("provider", "openrouter"), **kwargs)


def test_sanitize_replaces_every_slash():
    assert sanitize_model_id("fal-ai/flux/dev") == "fal-ai-flux-dev"
    assert sanitize_model_id("gpt-4") == "gpt-4"


def test_sanitize_is_idempotent():
    once = sanitize_model_id("a/b/c")
    assert sanitize_model_id(once) == once


def test_sync_adds_new_model_inactive(db):
    report = sync_models(db, [candidate("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet", type="text")], "openrouter")

    doc = db.models.find_one({"_id": "anthropic-claude-3.5-sonnet"})
    assert doc["originalId"] == "anthropic/claude-3.5-sonnet"
    assert doc["status"] == "inactive"
    assert doc["schemaVersion"] == 2
    assert doc["description"] == "Model: Claude 3.5 Sonnet"
    assert "isActive" not in doc
    assert report.created == ["anthropic-claude-3.5-sonnet"]


def test_resync_keeps_admin_status_and_refreshes_metadata(db):
    sync_models(db, [candidate("openai/gpt-4o", "GPT-4o", type="text")], "openrouter")
    db.models.update_one({"_id": "openai-gpt-4o"}, {"$set": {"status": "active"}})

    report = sync_models(db, [candidate("openai/gpt-4o", "GPT-4o (new)", type="text")], "openrouter")

    doc = db.models.find_one({"_id": "openai-gpt-4o"})
    assert doc["status"] == "active"
    assert doc["name"] == "GPT-4o (new)"
    assert report.updated == ["openai-gpt-4o"]
    assert report.created == []
    assert db.models.count_documents({}) == 1


def test_sync_skips_sanitized_id_collision(db):
    db.models.insert_one({"_id": "a-b", "originalId": "a-b", "name": "Original", "status": "active"})

    report = sync_models(db, [candidate("a/b", "Impostor", type="text")], "openrouter")

    assert report.collisions == [{"id": "a-b", "originalId": "a/b", "existingOriginalId": "a-b"}]
    assert report.synced == 0
    assert db.models.find_one({"_id": "a-b"})["name"] == "Original"


def test_sync_continues_after_failed_write(db):
    wrapped = Wrapped(FailingInserts(db.models, "bad-model"))
    candidates = [
        candidate("bad/model", "Bad", type="text"),
        candidate("good/model", "Good", type="text"),
    ]

    report = sync_models(wrapped, candidates, "openrouter")

    assert report.failed[0]["originalId"] == "bad/model"
    assert report.created == ["good-model"]
    assert db.models.find_one({"_id": "good-model"}) is not None


def test_sync_derives_missing_type(db):
    sync_models(db, [candidate("openai/dall-e-3", "DALL-E 3")], "openrouter")
    assert db.models.find_one({"_id": "openai-dall-e-3"})["type"] == "image"


def test_categorize_model_type():
    assert categorize_model_type("Whisper Large") == "audio"
    assert categorize_model_type("Sora") == "video"
    assert categorize_model_type("Code Llama") == "code"
    assert categorize_model_type("Claude 3.5 Sonnet") == "text"


def test_migration_converts_legacy_flag_once(db):
    db.models.insert_many([
        {"_id": "on", "name": "On", "isActive": True},
        {"_id": "off", "name": "Off", "isActive": False},
        {"_id": "both", "name": "Both", "isActive": True, "status": "inactive"},
    ])

    report = migrate_model_status(db)

    assert sorted(report.migrated) == ["both", "off", "on"]
    assert db.models.find_one({"_id": "on"})["status"] == "active"
    assert db.models.find_one({"_id": "off"})["status"] == "inactive"
    assert db.models.find_one({"_id": "both"})["status"] == "inactive"
    assert db.models.count_documents({"isActive": {"$exists": True}}) == 0
    assert db.models.count_documents({"schemaVersion": 2}) == 3


def test_migration_rerun_writes_nothing(db):
    db.models.insert_one({"_id": "legacy", "name": "Legacy", "isActive": True})
    migrate_model_status(db)

    counting = CountingWrites(db.models)
    report = migrate_model_status(Wrapped(counting))

    assert counting.writes == 0
    assert report.migrated == []
    assert report.skipped == 1


def test_catalog_reads(db):
    model_catalog.create_model(db, "fal-ai/flux/dev", "FLUX Dev", "image", "fal-ai", status="active")
    model_catalog.create_model(db, "openai/gpt-4", "GPT-4", "text", "openrouter")

    assert [m["id"] for m in model_catalog.get_active_models(db)] == ["fal-ai-flux-dev"]
    assert model_catalog.get_active_models(db, "text") == []
    assert model_catalog.get_sanitized_id(db, "fal-ai/flux/dev") == "fal-ai-flux-dev"
    assert model_catalog.get_sanitized_id(db, "unknown/model") == "unknown-model"
    assert model_catalog.get_original_id(db, "openai-gpt-4") == "openai/gpt-4"
    assert model_catalog.get_original_id(db, "missing") == "missing"


def test_update_model_ignores_status(db):
    model_catalog.create_model(db, "openai/gpt-4", "GPT-4", "text", "openrouter")

    model = model_catalog.update_model(db, "openai-gpt-4", {"name": "GPT-4 Turbo", "status": "active"})

    assert model["name"] == "GPT-4 Turbo"
    assert model["status"] == "inactive"
    assert model_catalog.update_model(db, "missing", {"name": "x"}) is None


def test_set_model_status(db):
    model_catalog.create_model(db, "openai/gpt-4", "GPT-4", "text", "openrouter")

    assert model_catalog.set_model_status(db, "openai-gpt-4", "active")["status"] == "active"
    assert model_catalog.set_model_status(db, "missing", "active") is None
    with pytest.raises(ValueError):
        model_catalog.set_model_status(db, "openai-gpt-4", "enabled")


def test_model_helper_reads_legacy_flag():
    doc = {"_id": "legacy", "isActive": True, "createdAt": datetime(2024, 1, 1)}
    model = model_catalog.model_helper(doc)
    assert model["status"] == "active"
    assert model["originalId"] == "legacy"
    assert model["name"] == "Unnamed Model"
