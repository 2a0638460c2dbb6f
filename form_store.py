"""Snapshot-backed document store for workspaces, forms, users, packages and submissions."""

from __future__ import annotations

import copy
import functools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List

from formkit.fields import normalize_fields
from formkit import ids
from formkit.ids import now_iso, random_id, slugify, unique_share_key
from formkit.settings import merge_settings
from formkit.snapshot_codec import snapshot_digest
from seed_data import DEFAULT_COLOR, default_dataset, seed_form, seed_packages
from snapshot_store import SnapshotStore


Record = Dict[str, Any]

COLLECTIONS = ("workspaces", "forms", "packages", "users", "submissions")
ROLES = ("owner", "member")
VISIBILITIES = ("public", "private")
FORM_UPDATABLE = ("name", "description", "isPublished", "visibility", "fields", "settings", "slug")
WORKSPACE_UPDATABLE = ("name", "slug", "ownerId", "color")
USER_UPDATABLE = ("name", "email", "passwordHash", "role", "workspaceId")

logger = logging.getLogger("forms.store")


@dataclass(eq=False)
class StoreError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


class InvalidFieldsError(StoreError):
    def __init__(self, message: str = "Fields must be an array") -> None:
        super().__init__("FIELDS_INVALID", message, "fields")


class EmailRequiredError(StoreError):
    def __init__(self) -> None:
        super().__init__("EMAIL_REQUIRED", "Email is required", "email")


class DuplicateEmailError(StoreError):
    def __init__(self, email: str) -> None:
        super().__init__("EMAIL_TAKEN", "Email already registered", "email")
        self.email = email


class PackageNotFoundError(StoreError):
    def __init__(self, package_id: Any) -> None:
        super().__init__("PACKAGE_NOT_FOUND", "Package not found", "packageId")
        self.package_id = package_id


class ShareKeyExhaustedError(StoreError):
    def __init__(self) -> None:
        super().__init__("SHARE_KEY_EXHAUSTED", "Unable to generate unique share key", "shareKey")


def _visibility(value: Any) -> str:
    return "private" if value == "private" else "public"


def _lower_email(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    email = value.strip().lower()
    return email or None


def _version(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 1
    return int(value) if value >= 1 else 1


def _digest(data: Any) -> str | None:
    try:
        return snapshot_digest(data)
    except (TypeError, ValueError):
        return None


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class FormStore:
    """Owns every entity collection and keeps the persisted snapshot in step.

    Mutations run under one re-entrant lock: read the current state, build the
    next record, normalize, persist, return a copy. Reads return copies too,
    so callers can never change stored records behind the store's back.
    """

    def __init__(self, snapshots: SnapshotStore, share_key_factory=None) -> None:
        self._snapshots = snapshots
        self._share_key_factory = share_key_factory
        self._lock = threading.RLock()
        self._data: Record = {}
        self._load_failed = False
        with self._lock:
            self._data = self.load()
            self.normalize_data()

    # --- persistence -------------------------------------------------------

    def _save(self, data: Record) -> bool:
        try:
            self._snapshots.save(data)
        except Exception as exc:
            logger.error("persist_failed error=%s", exc)
            return False
        return True

    def load(self) -> Record:
        try:
            data = self._snapshots.load()
        except Exception as exc:
            logger.error("load_failed error=%s fallback=seed", exc)
            self._load_failed = True
            return default_dataset()
        if data is None:
            data = default_dataset()
            logger.info("snapshot_missing action=seed")
            self._save(data)
            return data
        if not isinstance(data, dict):
            logger.error("load_failed error=snapshot is %s fallback=seed", type(data).__name__)
            self._load_failed = True
            return default_dataset()
        return data

    def persist(self) -> bool:
        with self._lock:
            return self._save(self._data)

    @contextmanager
    def transaction(self) -> Iterator["FormStore"]:
        with self._lock:
            yield self

    # --- normalization -----------------------------------------------------

    def _new_share_key(self, taken: set[str] | None = None) -> str:
        if taken is None:
            taken = {f.get("shareKey") for f in self._data.get("forms", []) if f.get("shareKey")}
        try:
            return unique_share_key(taken, token_factory=self._share_key_factory)
        except ids.ShareKeyExhaustedError as exc:
            logger.error("share_key_exhausted known_keys=%s", len(taken))
            raise ShareKeyExhaustedError() from exc

    def _normalize_packages(self, packages: list) -> list[Record]:
        normalized = []
        for pkg in packages:
            if not isinstance(pkg, dict):
                continue
            item = dict(pkg)
            item["id"] = item.get("id") or random_id("package")
            normalized.append(item)
        return normalized or seed_packages()

    def _normalize_workspace(self, workspace: Record, package_ids: list[str]) -> Record:
        now = now_iso()
        item = dict(workspace)
        item["id"] = item.get("id") or random_id("workspace")
        item["name"] = item.get("name") or "New Workspace"
        item["slug"] = item.get("slug") or slugify(item["name"], fallback_prefix="workspace")
        item["ownerId"] = item.get("ownerId")
        package_id = item.get("packageId")
        item["packageId"] = package_id if package_id in package_ids else (package_ids[0] if package_ids else None)
        item["color"] = item.get("color") or DEFAULT_COLOR
        item["createdAt"] = item.get("createdAt") or now
        item["updatedAt"] = item.get("updatedAt") or now
        return item

    def _normalize_user(self, user: Record, default_workspace_id: str | None) -> Record:
        now = now_iso()
        item = dict(user)
        item["id"] = item.get("id") or random_id("user")
        item["name"] = item.get("name") or "User"
        item["email"] = _lower_email(item.get("email"))
        item["passwordHash"] = item.get("passwordHash") or None
        item["role"] = item.get("role") if item.get("role") in ROLES else "member"
        item["workspaceId"] = item.get("workspaceId") or default_workspace_id
        item["createdAt"] = item.get("createdAt") or now
        item["updatedAt"] = item.get("updatedAt") or now
        return item

    def _normalize_form(self, form: Record, default_workspace_id: str | None) -> Record:
        now = now_iso()
        item = dict(form)
        item["id"] = item.get("id") or random_id("form")
        item["workspaceId"] = item.get("workspaceId") or default_workspace_id
        item["name"] = item.get("name") or "Untitled Form"
        item["slug"] = item.get("slug") or slugify(item["name"])
        item["description"] = item.get("description") or ""
        item["version"] = _version(item.get("version"))
        item["isPublished"] = bool(item.get("isPublished", False))
        if item.get("visibility") not in VISIBILITIES:
            item["visibility"] = "public" if item["isPublished"] else "private"
        item["fields"], _ = normalize_fields(item.get("fields"))
        item["settings"] = merge_settings(item.get("settings"))
        item["createdAt"] = item.get("createdAt") or now
        item["updatedAt"] = item.get("updatedAt") or now
        return item

    def normalize_data(self) -> bool:
        """Repair the loaded snapshot in place; persist only if anything changed.

        Returns True when a repair happened. Running it again on repaired data
        is a no-op and does not persist.
        """
        with self._lock:
            before = _digest(self._data)
            data = self._data
            seed = None
            for name in COLLECTIONS:
                if isinstance(data.get(name), list):
                    continue
                if name in ("workspaces", "users", "packages"):
                    seed = seed or default_dataset()
                    data[name] = seed[name]
                else:
                    data[name] = []

            data["packages"] = self._normalize_packages(data["packages"])
            package_ids = [p["id"] for p in data["packages"]]

            workspaces = [w for w in data["workspaces"] if isinstance(w, dict)]
            if not workspaces:
                workspaces = (seed or default_dataset())["workspaces"]
            data["workspaces"] = [self._normalize_workspace(w, package_ids) for w in workspaces]
            first_workspace_id = data["workspaces"][0]["id"]

            users: list[Record] = []
            seen_emails: set[str] = set()
            for raw_user in data["users"]:
                if not isinstance(raw_user, dict):
                    continue
                user = self._normalize_user(raw_user, first_workspace_id)
                email = user["email"]
                if email and email in seen_emails:
                    logger.warning("duplicate_user_dropped user_id=%s email=%s", user["id"], email)
                    continue
                if email:
                    seen_emails.add(email)
                users.append(user)
            data["users"] = users
            first_user_id = users[0]["id"] if users else None
            for workspace in data["workspaces"]:
                if not workspace.get("ownerId"):
                    workspace["ownerId"] = first_user_id

            raw_forms = [f for f in data["forms"] if isinstance(f, dict)]
            reserved = {f.get("shareKey") for f in raw_forms if isinstance(f.get("shareKey"), str) and f.get("shareKey")}
            seen_keys: set[str] = set()
            forms = []
            for raw_form in raw_forms:
                form = self._normalize_form(raw_form, first_workspace_id)
                key = form.get("shareKey")
                if not isinstance(key, str) or not key or key in seen_keys:
                    key = self._new_share_key(reserved | seen_keys)
                    form["shareKey"] = key
                seen_keys.add(key)
                reserved.add(key)
                forms.append(form)
            if not forms:
                form = seed_form()
                workspace_ids = {w["id"] for w in data["workspaces"]}
                if form["workspaceId"] not in workspace_ids:
                    form["workspaceId"] = first_workspace_id
                form["shareKey"] = self._new_share_key(seen_keys)
                forms.append(form)
                logger.info("seed_form_added form_id=%s", form["id"])
            data["forms"] = forms

            form_ids = {f["id"] for f in forms}
            submissions = [
                s for s in data["submissions"] if isinstance(s, dict) and s.get("formId") in form_ids
            ]
            dropped = len(data["submissions"]) - len(submissions)
            if dropped:
                logger.warning("orphan_submissions_dropped count=%s", dropped)
            data["submissions"] = submissions

            mutated = _digest(data) != before
            if mutated and self._load_failed:
                # the unreadable snapshot stays on disk until the next real write
                logger.warning("snapshot_unreadable action=skip_persist")
            elif mutated:
                logger.info("snapshot_normalized action=persist")
                self._save(data)
            return mutated

    # --- lookups -----------------------------------------------------------

    def _find(self, collection: str, key: str, value: Any) -> Record | None:
        if value is None:
            return None
        for item in self._data[collection]:
            if item.get(key) == value:
                return item
        return None

    def _index(self, collection: str, record_id: str) -> int | None:
        for idx, item in enumerate(self._data[collection]):
            if item.get("id") == record_id:
                return idx
        return None

    def _first_workspace_id(self) -> str | None:
        workspaces = self._data["workspaces"]
        return workspaces[0]["id"] if workspaces else None

    def _resolve_package_id(self, package_id: Any) -> str | None:
        if self._find("packages", "id", package_id):
            return package_id
        packages = self._data["packages"]
        return packages[0]["id"] if packages else None

    # --- workspaces --------------------------------------------------------

    @_locked
    def list_workspaces(self) -> list[Record]:
        return copy.deepcopy(self._data["workspaces"])

    @_locked
    def get_workspace(self, workspace_id: str | None) -> Record | None:
        return copy.deepcopy(self._find("workspaces", "id", workspace_id))

    def create_workspace(self, payload: Record | None = None) -> Record:
        payload = payload or {}
        with self._lock:
            now = now_iso()
            name = payload.get("name") or "New Workspace"
            workspace_id = payload.get("id")
            if not workspace_id or self._find("workspaces", "id", workspace_id):
                workspace_id = random_id("workspace")
            workspace = {
                "id": workspace_id,
                "name": name,
                "slug": slugify(payload.get("slug") or name, fallback_prefix="workspace"),
                "ownerId": payload.get("ownerId"),
                "packageId": self._resolve_package_id(payload.get("packageId")),
                "color": payload.get("color") or DEFAULT_COLOR,
                "createdAt": now,
                "updatedAt": now,
            }
            self._data["workspaces"].append(workspace)
            self.persist()
            return copy.deepcopy(workspace)

    def update_workspace(self, workspace_id: str, updates: Record | None) -> Record | None:
        updates = updates or {}
        with self._lock:
            idx = self._index("workspaces", workspace_id)
            if idx is None:
                return None
            current = self._data["workspaces"][idx]
            nxt = copy.deepcopy(current)
            for key in WORKSPACE_UPDATABLE:
                if key in updates:
                    nxt[key] = updates[key]
            if updates.get("slug"):
                nxt["slug"] = slugify(updates["slug"], fallback_prefix="workspace")
            elif updates.get("name"):
                nxt["slug"] = slugify(updates["name"], fallback_prefix="workspace")
            else:
                nxt["slug"] = current["slug"]
            nxt["name"] = nxt.get("name") or current["name"]
            nxt["updatedAt"] = now_iso()
            self._data["workspaces"][idx] = nxt
            self.persist()
            return copy.deepcopy(nxt)

    def assign_package(self, workspace_id: str, package_id: str) -> Record | None:
        with self._lock:
            workspace = self._find("workspaces", "id", workspace_id)
            if workspace is None:
                return None
            pkg = self._find("packages", "id", package_id)
            if pkg is None:
                raise PackageNotFoundError(package_id)
            workspace["packageId"] = pkg["id"]
            workspace["updatedAt"] = now_iso()
            self.persist()
            return copy.deepcopy(workspace)

    # --- packages ----------------------------------------------------------

    @_locked
    def list_packages(self) -> list[Record]:
        return copy.deepcopy(self._data["packages"])

    @_locked
    def get_package(self, package_id: str | None) -> Record | None:
        return copy.deepcopy(self._find("packages", "id", package_id))

    # --- users -------------------------------------------------------------

    @_locked
    def list_users(self) -> list[Record]:
        return copy.deepcopy(self._data["users"])

    @_locked
    def get_user(self, user_id: str | None) -> Record | None:
        return copy.deepcopy(self._find("users", "id", user_id))

    @_locked
    def get_user_by_email(self, email: str | None) -> Record | None:
        return copy.deepcopy(self._find("users", "email", _lower_email(email)))

    def create_user(self, payload: Record) -> Record:
        with self._lock:
            email = _lower_email(payload.get("email"))
            if not email:
                raise EmailRequiredError()
            if self._find("users", "email", email):
                raise DuplicateEmailError(email)
            now = now_iso()
            user_id = payload.get("id")
            if not user_id or self._find("users", "id", user_id):
                user_id = random_id("user")
            user = {
                "id": user_id,
                "name": payload.get("name") or "User",
                "email": email,
                "passwordHash": payload.get("passwordHash") or None,
                "role": payload.get("role") if payload.get("role") in ROLES else "member",
                "workspaceId": payload.get("workspaceId"),
                "createdAt": now,
                "updatedAt": now,
            }
            self._data["users"].append(user)
            self.persist()
            return copy.deepcopy(user)

    def update_user(self, user_id: str, updates: Record | None) -> Record | None:
        updates = updates or {}
        with self._lock:
            idx = self._index("users", user_id)
            if idx is None:
                return None
            current = self._data["users"][idx]
            nxt = copy.deepcopy(current)
            for key in USER_UPDATABLE:
                if key in updates:
                    nxt[key] = updates[key]
            email = _lower_email(updates.get("email"))
            if email and email != current.get("email"):
                if self._find("users", "email", email):
                    raise DuplicateEmailError(email)
                nxt["email"] = email
            else:
                nxt["email"] = current.get("email")
            if nxt.get("role") not in ROLES:
                nxt["role"] = current.get("role")
            nxt["updatedAt"] = now_iso()
            self._data["users"][idx] = nxt
            self.persist()
            return copy.deepcopy(nxt)

    # --- forms -------------------------------------------------------------

    @_locked
    def list_forms(self, workspace_id: str | None = None) -> list[Record]:
        forms = self._data["forms"]
        if workspace_id:
            forms = [f for f in forms if f.get("workspaceId") == workspace_id]
        return copy.deepcopy(forms)

    @_locked
    def list_forms_summary(self, workspace_id: str | None = None) -> list[Record]:
        summaries = []
        for form in self.list_forms(workspace_id):
            form["submissionCount"] = self.get_submission_count(form["id"])
            form["lastSubmissionAt"] = self.get_last_submission_at(form["id"])
            summaries.append(form)
        return summaries

    @_locked
    def get_form(self, form_id: str | None) -> Record | None:
        return copy.deepcopy(self._find("forms", "id", form_id))

    @_locked
    def get_form_by_slug(self, slug: str | None, workspace_id: str | None = None) -> Record | None:
        for form in self._data["forms"]:
            if form.get("slug") != slug:
                continue
            if workspace_id and form.get("workspaceId") != workspace_id:
                continue
            return copy.deepcopy(form)
        return None

    @_locked
    def get_form_by_share_key(self, share_key: str | None) -> Record | None:
        if not share_key:
            return None
        return copy.deepcopy(self._find("forms", "shareKey", share_key))

    def create_form(self, payload: Record) -> Record:
        fields = payload.get("fields")
        if fields is not None and not isinstance(fields, list):
            raise InvalidFieldsError()
        with self._lock:
            now = now_iso()
            name = payload.get("name") or "Untitled Form"
            form_id = payload.get("id")
            if not form_id or self._find("forms", "id", form_id):
                form_id = random_id("form")
            form = {
                "id": form_id,
                "workspaceId": payload.get("workspaceId") or self._first_workspace_id(),
                "name": name,
                "slug": slugify(payload.get("slug") or name),
                "description": payload.get("description") or "",
                "version": 1,
                "isPublished": bool(payload.get("isPublished", False)),
                "visibility": _visibility(payload.get("visibility")),
                "shareKey": self._new_share_key(),
                "fields": normalize_fields(fields)[0],
                "settings": merge_settings(payload.get("settings")),
                "createdAt": now,
                "updatedAt": now,
            }
            self._data["forms"].append(form)
            self.persist()
            return copy.deepcopy(form)

    def update_form(self, form_id: str, updates: Record | None) -> Record | None:
        updates = updates or {}
        fields = updates.get("fields")
        if fields is not None and not isinstance(fields, list):
            raise InvalidFieldsError()
        with self._lock:
            idx = self._index("forms", form_id)
            if idx is None:
                return None
            current = self._data["forms"][idx]
            nxt = copy.deepcopy(current)
            for key in FORM_UPDATABLE:
                if key in updates and key not in ("fields", "settings", "slug"):
                    nxt[key] = updates[key]
            nxt["name"] = nxt.get("name") or current["name"]
            nxt["description"] = nxt.get("description") or ""
            nxt["isPublished"] = bool(nxt.get("isPublished"))
            if "visibility" in updates:
                nxt["visibility"] = _visibility(updates["visibility"])
            if fields is not None:
                nxt["fields"], _ = normalize_fields(fields)
            if "settings" in updates:
                patch = updates["settings"] if isinstance(updates["settings"], dict) else {}
                nxt["settings"] = merge_settings({**current["settings"], **patch})
            else:
                nxt["settings"] = merge_settings(current["settings"])
            if updates.get("slug"):
                nxt["slug"] = slugify(updates["slug"])
            elif updates.get("name"):
                nxt["slug"] = slugify(updates["name"])
            nxt["version"] = _version(current.get("version")) + 1
            nxt["updatedAt"] = now_iso()
            self._data["forms"][idx] = nxt
            self.persist()
            return copy.deepcopy(nxt)

    def delete_form(self, form_id: str) -> bool:
        with self._lock:
            idx = self._index("forms", form_id)
            if idx is None:
                return False
            del self._data["forms"][idx]
            before = len(self._data["submissions"])
            self._data["submissions"] = [s for s in self._data["submissions"] if s.get("formId") != form_id]
            logger.info("form_deleted form_id=%s submissions_removed=%s", form_id, before - len(self._data["submissions"]))
            self.persist()
            return True

    def regenerate_share_key(self, form_id: str) -> str | None:
        with self._lock:
            form = self._find("forms", "id", form_id)
            if form is None:
                return None
            form["shareKey"] = self._new_share_key()
            form["updatedAt"] = now_iso()
            self.persist()
            return form["shareKey"]

    # --- submissions -------------------------------------------------------

    def _submissions_for(self, form_id: str) -> List[Record]:
        return [s for s in self._data["submissions"] if s.get("formId") == form_id]

    @_locked
    def list_submissions(self, form_id: str) -> list[Record]:
        return copy.deepcopy(self._submissions_for(form_id))

    @_locked
    def get_submission(self, submission_id: str | None) -> Record | None:
        return copy.deepcopy(self._find("submissions", "id", submission_id))

    @_locked
    def get_submission_count(self, form_id: str) -> int:
        return len(self._submissions_for(form_id))

    @_locked
    def get_last_submission_at(self, form_id: str) -> str | None:
        items = self._submissions_for(form_id)
        return items[0].get("submittedAt") if items else None

    @_locked
    def list_recent_submissions(self, limit: int = 10, workspace_id: str | None = None) -> list[Record]:
        items = self._data["submissions"]
        if workspace_id:
            form_ids = {f["id"] for f in self._data["forms"] if f.get("workspaceId") == workspace_id}
            items = [s for s in items if s.get("formId") in form_ids]
        return copy.deepcopy(items[: max(0, limit)])

    def add_submission(self, form_id: str, data: Record | None) -> Record | None:
        with self._lock:
            if self._find("forms", "id", form_id) is None:
                return None
            submission = {
                "id": random_id("submission"),
                "formId": form_id,
                "submittedAt": now_iso(),
                "data": copy.deepcopy(data) if isinstance(data, dict) else {},
            }
            self._data["submissions"].insert(0, submission)
            self.persist()
            return copy.deepcopy(submission)

    def delete_submission(self, submission_id: str) -> bool:
        with self._lock:
            idx = self._index("submissions", submission_id)
            if idx is None:
                return False
            del self._data["submissions"][idx]
            self.persist()
            return True
