from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from app.auth import hash_password, issue_token, verify_password
from form_store import DuplicateEmailError, FormStore


logger = logging.getLogger("forms.auth")


@dataclass(eq=False)
class AuthError(Exception):
    code: str
    message: str
    status: int = 401

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.code}: {self.message}"


def public_user(user: dict | None) -> dict | None:
    if user is None:
        return None
    return {key: value for key, value in user.items() if key != "passwordHash"}


def session_payload(store: FormStore, user: dict, token: str | None = None) -> dict:
    workspace = store.get_workspace(user.get("workspaceId"))
    package = store.get_package(workspace.get("packageId")) if workspace else None
    return {
        "token": token if token is not None else issue_token(user),
        "user": public_user(user),
        "workspace": workspace,
        "package": package,
    }


def signup(store: FormStore, payload: dict[str, Any]) -> dict:
    """Create a workspace and its owner in one step.

    The whole sequence holds the store lock, so two signups racing on one
    email cannot both pass the duplicate check.
    """
    email = (payload.get("email") or "").strip()
    password = payload.get("password") or ""
    if not email or not password:
        raise AuthError("CREDENTIALS_REQUIRED", "Email and password are required", status=400)
    name = payload.get("name")
    password_hash = hash_password(password)
    with store.transaction():
        if store.get_user_by_email(email):
            raise DuplicateEmailError(email.lower())
        package = store.get_package(payload.get("packageId")) or (store.list_packages() or [None])[0]
        workspace = store.create_workspace(
            {
                "name": payload.get("workspaceName") or f"{name or 'New'}'s Workspace",
                "packageId": package["id"] if package else None,
            }
        )
        user = store.create_user(
            {
                "name": name or "Owner",
                "email": email,
                "passwordHash": password_hash,
                "role": "owner",
                "workspaceId": workspace["id"],
            }
        )
        store.update_workspace(workspace["id"], {"ownerId": user["id"]})
    logger.info("signup user_id=%s workspace_id=%s", user["id"], workspace["id"])
    return session_payload(store, user)


def login(store: FormStore, email: str | None, password: str | None) -> dict:
    if not email or not password:
        raise AuthError("CREDENTIALS_REQUIRED", "Email and password are required", status=400)
    user = store.get_user_by_email(email)
    if user is None or not verify_password(password, user.get("passwordHash")):
        logger.warning("login_failed email=%s", email.strip().lower())
        raise AuthError("INVALID_CREDENTIALS", "Invalid credentials")
    logger.info("login user_id=%s", user["id"])
    return session_payload(store, user)


def login_with_identity(store: FormStore, email: str | None, display_name: str | None = None) -> dict:
    """Sign in a user vouched for by an external identity provider.

    First login creates a workspace and an owner without a password. A known
    user whose workspace is gone gets a fresh one.
    """
    if not email:
        raise AuthError("EMAIL_REQUIRED", "Account email is required", status=400)
    with store.transaction():
        user = store.get_user_by_email(email)
        if user is None:
            name = display_name or email.split("@")[0] or "User"
            workspace = store.create_workspace({"name": f"{name}'s Workspace"})
            user = store.create_user(
                {
                    "name": name,
                    "email": email,
                    "passwordHash": None,
                    "role": "owner",
                    "workspaceId": workspace["id"],
                }
            )
            store.update_workspace(workspace["id"], {"ownerId": user["id"]})
            logger.info("identity_signup user_id=%s workspace_id=%s", user["id"], workspace["id"])
        elif store.get_workspace(user.get("workspaceId")) is None:
            workspace = store.create_workspace({"name": user.get("name") or "Workspace", "ownerId": user["id"]})
            user = store.update_user(user["id"], {"workspaceId": workspace["id"]})
            logger.info("identity_workspace_restored user_id=%s workspace_id=%s", user["id"], workspace["id"])
    return session_payload(store, user)
