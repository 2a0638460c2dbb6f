import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)
os.environ.setdefault("FORMS_BCRYPT_ROUNDS", "4")

from app.accounts import AuthError, login, login_with_identity, signup
from app.auth import decode_token, hash_password, issue_token, verify_password
from form_store import DuplicateEmailError, FormStore
from snapshot_store import MemorySnapshotStore


class TestPasswords(unittest.TestCase):
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("hunter22", rounds=4)
        self.assertTrue(hashed.startswith("$2b$04$"))
        self.assertTrue(verify_password("hunter22", hashed))
        self.assertFalse(verify_password("hunter23", hashed))
        self.assertFalse(verify_password("hunter22", None))
        self.assertFalse(verify_password("hunter22", "not-a-hash"))

    def test_token_round_trip(self) -> None:
        token = issue_token({"id": "user-1", "workspaceId": "w1", "role": "owner"}, secret="s3cret")
        claims = decode_token(token, secret="s3cret")
        self.assertEqual((claims["sub"], claims["workspaceId"], claims["role"]), ("user-1", "w1", "owner"))


class TestAccounts(unittest.TestCase):
    def setUp(self) -> None:
        self.store = FormStore(MemorySnapshotStore())

    def test_signup_creates_owner_and_workspace(self) -> None:
        session = signup(self.store, {"name": "Sky", "email": "Sky@Example.test", "password": "pw123456", "packageId": "package-growth"})
        user = session["user"]
        workspace = session["workspace"]
        self.assertNotIn("passwordHash", user)
        self.assertEqual(user["role"], "owner")
        self.assertEqual(user["email"], "sky@example.test")
        self.assertEqual(workspace["name"], "Sky's Workspace")
        self.assertEqual(workspace["ownerId"], user["id"])
        self.assertEqual(session["package"]["id"], "package-growth")
        self.assertEqual(decode_token(session["token"])["sub"], user["id"])

    def test_signup_unknown_package_uses_first(self) -> None:
        session = signup(self.store, {"email": "a@example.test", "password": "pw", "packageId": "nope"})
        self.assertEqual(session["package"]["id"], "package-starter")
        self.assertEqual(session["workspace"]["name"], "New's Workspace")

    def test_signup_requires_credentials(self) -> None:
        with self.assertRaises(AuthError) as ctx:
            signup(self.store, {"email": "a@example.test"})
        self.assertEqual(ctx.exception.status, 400)

    def test_duplicate_signup_is_rejected(self) -> None:
        signup(self.store, {"email": "dup@example.test", "password": "pw"})
        workspaces = len(self.store.list_workspaces())
        with self.assertRaises(DuplicateEmailError):
            signup(self.store, {"email": "DUP@example.test", "password": "pw"})
        self.assertEqual(len(self.store.list_workspaces()), workspaces)

    def test_login(self) -> None:
        signup(self.store, {"email": "crew@example.test", "password": "right-pw"})
        session = login(self.store, "Crew@Example.test", "right-pw")
        self.assertEqual(session["user"]["email"], "crew@example.test")
        with self.assertRaises(AuthError) as ctx:
            login(self.store, "crew@example.test", "wrong-pw")
        self.assertEqual(ctx.exception.code, "INVALID_CREDENTIALS")
        with self.assertRaises(AuthError):
            login(self.store, "ghost@example.test", "right-pw")

    def test_identity_login_first_time_and_again(self) -> None:
        first = login_with_identity(self.store, "google@example.test", "Gee")
        self.assertEqual(first["workspace"]["name"], "Gee's Workspace")
        self.assertEqual(first["user"]["role"], "owner")
        again = login_with_identity(self.store, "google@example.test")
        self.assertEqual(again["user"]["id"], first["user"]["id"])
        self.assertEqual(again["workspace"]["id"], first["workspace"]["id"])
        with self.assertRaises(AuthError):
            login(self.store, "google@example.test", "anything")

    def test_identity_login_restores_missing_workspace(self) -> None:
        user = self.store.create_user({"name": "Drifter", "email": "drift@example.test", "workspaceId": "gone"})
        session = login_with_identity(self.store, "drift@example.test")
        self.assertEqual(session["user"]["id"], user["id"])
        self.assertEqual(session["workspace"]["name"], "Drifter")
        self.assertEqual(session["workspace"]["ownerId"], user["id"])
        self.assertEqual(session["user"]["workspaceId"], session["workspace"]["id"])


if __name__ == "__main__":
    unittest.main()
