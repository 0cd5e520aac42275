#!/usr/bin/env python3
"""
Admin console state: an immutable snapshot of the five console sections,
pure filters over it, and the concurrent dashboard loader.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError

from model_catalog import list_models, status_of

SECTIONS = ("users", "projects", "models", "subscriptions", "payments")


@dataclass(frozen=True)
class AdminSnapshot:
    users: Tuple[dict, ...] = ()
    projects: Tuple[dict, ...] = ()
    models: Tuple[dict, ...] = ()
    subscriptions: Tuple[dict, ...] = ()
    payments: Tuple[dict, ...] = ()
    errors: Dict[str, str] = field(default_factory=dict)

    def section(self, name: str) -> Tuple[dict, ...]:
        if name not in SECTIONS:
            raise KeyError(f"Unknown console section: {name}")
        return getattr(self, name)

    def to_dict(self) -> dict:
        data = {name: list(self.section(name)) for name in SECTIONS}
        data["errors"] = dict(self.errors)
        return data


class AdminState:
    """Holds the current snapshot. `apply` is the only way to change it."""

    def __init__(self, snapshot: Optional[AdminSnapshot] = None):
        self._snapshot = snapshot or AdminSnapshot()

    @property
    def snapshot(self) -> AdminSnapshot:
        return self._snapshot

    def get(self, section: str) -> Tuple[dict, ...]:
        return self._snapshot.section(section)

    def apply(self, section: str, items: List[dict]) -> AdminSnapshot:
        self._snapshot.section(section)
        errors = {k: v for k, v in self._snapshot.errors.items() if k != section}
        self._snapshot = replace(self._snapshot, errors=errors, **{section: tuple(items)})
        return self._snapshot

    def stats(self) -> dict:
        snapshot = self._snapshot
        revenue = sum(
            float(p.get("amount") or 0)
            for p in snapshot.payments
            if p.get("status") == "completed"
        )
        return {
            "totalUsers": len(snapshot.users),
            "totalProjects": len(snapshot.projects),
            "totalModels": len(snapshot.models),
            "activeModels": sum(1 for m in snapshot.models if m.get("status") == "active"),
            "totalRevenue": round(revenue, 2),
        }


# --- Pure filters ---

def filter_section(snapshot: AdminSnapshot, section: str, predicate: Callable[[dict], bool]) -> AdminSnapshot:
    """Return a new snapshot with `section` narrowed to items matching `predicate`."""
    items = tuple(item for item in snapshot.section(section) if predicate(item))
    return replace(snapshot, **{section: items})


def _matches(search: Optional[str], *values) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(needle in str(v).lower() for v in values if v)


def _as_datetime(value) -> Optional[datetime]:
    """Naive UTC datetime from a datetime or ISO string; aware values are converted first."""
    if isinstance(value, str) and value:
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def filter_users(snapshot: AdminSnapshot, search: Optional[str] = None,
                 status: Optional[str] = None, role: Optional[str] = None) -> AdminSnapshot:
    def predicate(user):
        if not _matches(search, user.get("email"), user.get("displayName")):
            return False
        if status:
            active = user.get("isActive", True) is not False
            if (status == "active") != active:
                return False
        if role and (user.get("role") or "user") != role:
            return False
        return True

    return filter_section(snapshot, "users", predicate)


def filter_projects(snapshot: AdminSnapshot, search: Optional[str] = None,
                    status: Optional[str] = None) -> AdminSnapshot:
    def predicate(project):
        if not _matches(search, project.get("name"), project.get("description"), project.get("userEmail")):
            return False
        if status and (project.get("status") or "active") != status:
            return False
        return True

    return filter_section(snapshot, "projects", predicate)


def filter_models(snapshot: AdminSnapshot, search: Optional[str] = None, model_type: Optional[str] = None,
                  provider: Optional[str] = None, status: Optional[str] = None) -> AdminSnapshot:
    def predicate(model):
        if not _matches(search, model.get("name"), model.get("description"), model.get("originalId")):
            return False
        if model_type and model.get("type") != model_type:
            return False
        if provider and model.get("provider") != provider:
            return False
        if status and status_of(model) != status:
            return False
        return True

    return filter_section(snapshot, "models", predicate)


def filter_subscriptions(snapshot: AdminSnapshot, search: Optional[str] = None,
                         status: Optional[str] = None) -> AdminSnapshot:
    def predicate(plan):
        if not _matches(search, plan.get("planName"), plan.get("id")):
            return False
        if status and (status == "active") != bool(plan.get("isActive")):
            return False
        return True

    return filter_section(snapshot, "subscriptions", predicate)


def filter_payments(snapshot: AdminSnapshot, search: Optional[str] = None, status: Optional[str] = None,
                    date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> AdminSnapshot:
    date_from = _as_datetime(date_from)
    date_to = _as_datetime(date_to)

    def predicate(payment):
        if not _matches(search, payment.get("userEmail"), payment.get("id"), payment.get("description")):
            return False
        if status and payment.get("status") != status:
            return False
        if date_from or date_to:
            when = _as_datetime(payment.get("date"))
            if when is None:
                return False
            if date_from and when < date_from:
                return False
            if date_to and when > date_to:
                return False
        return True

    return filter_section(snapshot, "payments", predicate)


# --- Loaders ---

def _with_id(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def load_users(db) -> List[dict]:
    return [_with_id(doc) for doc in db.users.find()]


def load_projects(db) -> List[dict]:
    emails = {doc["_id"]: doc.get("email") for doc in db.users.find({}, {"email": 1})}
    projects = []
    for doc in db.projects.find().sort("createdAt", -1):
        project = _with_id(doc)
        project["userEmail"] = emails.get(project.get("userId"))
        projects.append(project)
    return projects


def load_models(db) -> List[dict]:
    return list_models(db)


def load_subscriptions(db) -> List[dict]:
    return [_with_id(doc) for doc in db.subscriptions.find()]


def load_payments(db) -> List[dict]:
    return [_with_id(doc) for doc in db.payments.find().sort("date", -1)]


LOADERS = {
    "users": load_users,
    "projects": load_projects,
    "models": load_models,
    "subscriptions": load_subscriptions,
    "payments": load_payments,
}


async def _load_section(db, section: str):
    try:
        return await asyncio.to_thread(LOADERS[section], db), None
    except PyMongoError as e:
        print(f"[admin] Error loading {section}: {e}")
        return [], f"Failed to load {section}: {e}"


async def load_dashboard(db) -> AdminState:
    """Load every section concurrently. A failed section is empty and listed in `errors`."""
    results = await asyncio.gather(*(_load_section(db, section) for section in SECTIONS))

    state = AdminState()
    errors = {}
    for section, (items, error) in zip(SECTIONS, results):
        state.apply(section, items)
        if error:
            errors[section] = error
    return AdminState(replace(state.snapshot, errors=errors))
