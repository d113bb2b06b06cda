"""Tests for registration, login and admin session endpoints."""

import json
from datetime import timedelta

from auth import security
from conftest import ADMIN_PASSWORD, ADMIN_USERNAME, post_escaped_json, register_user


class TestRegister:
    """Test user registration."""

    def test_register_returns_user_and_token(self, api_client):
        """Test that registration returns the new user with a token."""
        user = register_user(api_client, username="  bob ", email=" Bob@Example.COM ")
        assert user["username"] == "bob"
        assert user["email"] == "bob@example.com"
        assert len(user["token"]) == 64
        assert user["id"]

    def test_register_persists_hashed_password(self, api_client, test_env):
        """Test that the users blob stores a bcrypt hash, not the password."""
        register_user(api_client, password="plain-text-pw")
        users = json.loads((test_env / "users.json").read_text(encoding="utf-8"))
        assert len(users) == 1
        assert users[0]["password_hash"] != "plain-text-pw"
        assert users[0]["password_hash"].startswith("$2")
        assert users[0]["is_active"] is True

    def test_duplicate_email_rejected(self, api_client, registered_user):
        """Test that an email already registered (any case) is a conflict."""
        response = api_client.post(
            "/api/auth/register",
            json={"username": "other", "email": "ALICE@example.com", "password": "pw"},
        )
        assert response.status_code == 409

    def test_duplicate_username_rejected(self, api_client, registered_user):
        """Test that a username already taken is a conflict."""
        response = api_client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "new@example.com", "password": "pw"},
        )
        assert response.status_code == 409

    def test_missing_fields_rejected(self, api_client):
        """Test that registration requires username, email and password."""
        response = api_client.post("/api/auth/register", json={"email": "x@example.com"})
        assert response.status_code == 422

    def test_blank_username_rejected(self, api_client):
        """Test that whitespace-only fields count as missing."""
        response = api_client.post(
            "/api/auth/register",
            json={"username": "   ", "email": "x@example.com", "password": "pw"},
        )
        assert response.status_code == 422


class TestLogin:
    """Test user login and token rotation."""

    def test_login_rotates_token(self, api_client, registered_user):
        """Test that a successful login issues a new token."""
        response = api_client.post(
            "/api/auth/login",
            json={"email": "Alice@Example.com", "password": "s3cret-pass"},
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["id"] == registered_user["id"]
        assert user["token"] != registered_user["token"]

    def test_old_token_stops_working_after_login(self, api_client, registered_user):
        """Test that only the latest token authorizes publishing."""
        api_client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "s3cret-pass"},
        )
        response = api_client.post(
            "/api/publish/story",
            json={
                "title": "T",
                "content": "C",
                "publish_type": "chapter",
                "token": registered_user["token"],
            },
        )
        assert response.status_code == 401

    def test_wrong_password(self, api_client, registered_user):
        """Test that a wrong password is rejected."""
        response = api_client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "nope"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password."

    def test_unknown_email(self, api_client):
        """Test that an unknown email gets the same error as a wrong password."""
        response = api_client.post(
            "/api/auth/login",
            json={"email": "ghost@example.com", "password": "whatever"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password."

    def test_inactive_user_forbidden(self, api_client, registered_user, test_env):
        """Test that a disabled account cannot log in."""
        users_file = test_env / "users.json"
        users = json.loads(users_file.read_text(encoding="utf-8"))
        users[0]["is_active"] = False
        users_file.write_text(json.dumps(users), encoding="utf-8")

        response = api_client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "s3cret-pass"},
        )
        assert response.status_code == 403


class TestAdminSessions:
    """Test admin login and session verification."""

    def test_admin_login(self, api_client):
        """Test that admin login returns an admin_ token and session info."""
        response = api_client.post(
            "/api/auth/admin-login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token"].startswith("admin_")
        assert body["admin"]["role"] == "admin"
        assert body["admin"]["username"] == ADMIN_USERNAME

    def test_admin_login_creates_session_blob(self, api_client, admin_token, test_env):
        """Test that the session is stored under its token key."""
        assert (test_env / f"admin_session_{admin_token}.json").exists()

    def test_admin_login_bad_password(self, api_client):
        """Test that wrong admin credentials are rejected."""
        response = api_client.post(
            "/api/auth/admin-login",
            json={"username": ADMIN_USERNAME, "password": "admin123"},
        )
        assert response.status_code == 401

    def test_verify_admin(self, api_client, admin_token):
        """Test that a live admin token verifies."""
        response = api_client.post("/api/auth/verify-admin", json={"token": admin_token})
        assert response.status_code == 200
        assert response.json()["admin"]["id"] == "admin_001"

    def test_verify_admin_rejects_forged_prefix(self, api_client):
        """Test that a token with the admin prefix but no session is rejected."""
        response = api_client.post(
            "/api/auth/verify-admin",
            json={"token": "admin_token_1234567890_abcdef"},
        )
        assert response.status_code == 401

    def test_verify_admin_rejects_user_token(self, api_client, registered_user):
        """Test that a regular user token is not an admin token."""
        response = api_client.post(
            "/api/auth/verify-admin",
            json={"token": registered_user["token"]},
        )
        assert response.status_code == 401

    def test_expired_session_rejected_and_removed(self, api_client, admin_token, test_env):
        """Test that an expired admin session is rejected and deleted."""
        session_file = test_env / f"admin_session_{admin_token}.json"
        session = json.loads(session_file.read_text(encoding="utf-8"))
        session["expires_at"] = security.isoformat(security.utc_now() - timedelta(minutes=1))
        session_file.write_text(json.dumps(session), encoding="utf-8")

        response = api_client.post("/api/auth/verify-admin", json={"token": admin_token})
        assert response.status_code == 401
        assert not session_file.exists()

    def test_token_with_path_characters_rejected(self, api_client):
        """Test that tokens which cannot name a session are plain 401s."""
        response = api_client.post(
            "/api/auth/verify-admin",
            json={"token": "admin_../../users"},
        )
        assert response.status_code == 401

    def test_session_ttl_from_env(self, api_client, monkeypatch):
        """Test that ADMIN_SESSION_TTL_HOURS sets the session lifetime."""
        monkeypatch.setenv("ADMIN_SESSION_TTL_HOURS", "2")
        admin = api_client.post(
            "/api/auth/admin-login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        ).json()["admin"]
        lifetime = security.parse_iso(admin["expires_at"]) - security.parse_iso(admin["login_at"])
        assert lifetime == timedelta(hours=2)

    def test_session_ttl_falls_back_to_a_day(self, monkeypatch):
        """Test that unusable TTL values fall back to 24 hours, with a floor of one."""
        monkeypatch.setenv("ADMIN_SESSION_TTL_HOURS", "soon")
        assert security.admin_session_ttl() == timedelta(hours=24)
        monkeypatch.setenv("ADMIN_SESSION_TTL_HOURS", "0")
        assert security.admin_session_ttl() == timedelta(hours=1)

    def test_login_sweeps_expired_sessions(self, api_client, admin_token, test_env):
        """Test that admin login deletes sessions that have already expired."""
        stale = test_env / "admin_session_admin_stale.json"
        stale.write_text(
            json.dumps({"token": "admin_stale", "expires_at": "2020-01-01T00:00:00.000000Z"}),
            encoding="utf-8",
        )
        live = test_env / f"admin_session_{admin_token}.json"

        response = api_client.post(
            "/api/auth/admin-login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 200
        assert not stale.exists()
        assert live.exists()
        assert (test_env / f"admin_session_{response.json()['token']}.json").exists()


def write_admins(data_dir, *admins):
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "admins.json").write_text(json.dumps(list(admins)), encoding="utf-8")


class TestStoredAdmins:
    """Test admin accounts kept in the admins blob."""

    def test_stored_admin_can_log_in(self, api_client, test_env):
        """Test that an active stored admin gets a session with its own id and role."""
        write_admins(
            test_env,
            {
                "id": "admin_007",
                "username": "editor",
                "password_hash": security.hash_password("editor-pass"),
                "role": "moderator",
                "is_active": True,
            },
        )
        response = api_client.post(
            "/api/auth/admin-login",
            json={"username": "editor", "password": "editor-pass"},
        )
        assert response.status_code == 200
        admin = response.json()["admin"]
        assert admin["id"] == "admin_007"
        assert admin["username"] == "editor"
        assert admin["role"] == "moderator"

        verified = api_client.post("/api/auth/verify-admin", json={"token": response.json()["token"]})
        assert verified.json()["admin"]["id"] == "admin_007"

    def test_stored_admin_role_defaults_to_admin(self, api_client, test_env):
        """Test that a stored admin without a role logs in as admin."""
        write_admins(
            test_env,
            {
                "id": "admin_002",
                "username": "editor",
                "password_hash": security.hash_password("editor-pass"),
                "is_active": True,
            },
        )
        response = api_client.post(
            "/api/auth/admin-login",
            json={"username": "editor", "password": "editor-pass"},
        )
        assert response.json()["admin"]["role"] == "admin"

    def test_inactive_or_wrong_password_rejected(self, api_client, test_env):
        """Test that inactive stored admins and bad passwords are 401s."""
        write_admins(
            test_env,
            {
                "id": "admin_003",
                "username": "retired",
                "password_hash": security.hash_password("retired-pass"),
                "is_active": False,
            },
            {
                "id": "admin_004",
                "username": "editor",
                "password_hash": security.hash_password("editor-pass"),
                "is_active": True,
            },
        )
        for username, password in (("retired", "retired-pass"), ("editor", "wrong-pass")):
            response = api_client.post(
                "/api/auth/admin-login",
                json={"username": username, "password": password},
            )
            assert response.status_code == 401


class TestUnencodableText:
    """Test that text with lone surrogates is rejected as bad input."""

    def test_register_rejects_lone_surrogate(self, api_client, test_env):
        """Test that registration fields must be encodable as UTF-8."""
        for field in ("username", "email", "password"):
            payload = {"username": "carol", "email": "carol@example.com", "password": "pw-pw-pw"}
            payload[field] = payload[field] + "\ud800"
            response = post_escaped_json(api_client, "/api/auth/register", payload)
            assert response.status_code == 422
        assert not (test_env / "users.json").exists()

    def test_login_rejects_lone_surrogate(self, api_client, registered_user):
        """Test that login input with a lone surrogate is a 422, not a crash."""
        response = post_escaped_json(
            api_client,
            "/api/auth/login",
            {"email": "alice@example.com", "password": "s3cret\ud800"},
        )
        assert response.status_code == 422

    def test_tokens_match_tolerates_surrogates(self):
        """Test that comparing unencodable tokens is a mismatch."""
        assert security.tokens_match("abc\ud800", "abc") is False
