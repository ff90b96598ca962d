"""
Auth Flow Tests
===============

Registration, login, token verification and logout through the API.
"""

from bson import ObjectId

from conftest import auth_header, register
from security import PasswordHasher


class TestRegister:

    def test_register_returns_token_and_user(self, client):
        response = client.post("/api/auth/register", json={"email": "a@x.com", "password": "secret1"})
        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert body["user"]["email"] == "a@x.com"
        assert body["user"]["username"] == "a"
        assert "passwordHash" not in body["user"]
        assert "password" not in body["user"]

    def test_token_user_is_persisted_with_verifying_hash(self, client, db, settings):
        token, user_id = register(client, "a@x.com", "secret1")
        claims = client.get("/api/auth/verify", headers=auth_header(token)).json()["user"]
        assert claims["userId"] == user_id

        stored = db["users"].find_one({"_id": ObjectId(user_id)})
        assert stored["passwordHash"] != "secret1"
        assert PasswordHasher(settings).verify("secret1", stored["passwordHash"])

    def test_email_is_trimmed_and_lowercased(self, client, db):
        register(client, "  Mixed.Case@X.com ", "secret1")
        assert db["users"].find_one({"email": "mixed.case@x.com"}) is not None

    def test_duplicate_email_rejected_case_insensitively(self, client, db):
        register(client, "a@x.com", "secret1")
        response = client.post("/api/auth/register", json={"email": "A@X.COM", "password": "secret9"})
        assert response.status_code == 400
        assert "already exists" in response.json()["message"]
        assert db["users"].count_documents({}) == 1

    def test_short_password_rejected(self, client, db):
        response = client.post("/api/auth/register", json={"email": "a@x.com", "password": "12345"})
        assert response.status_code == 400
        assert db["users"].count_documents({}) == 0

    def test_missing_fields_rejected(self, client):
        assert client.post("/api/auth/register", json={"email": "a@x.com"}).status_code == 400
        assert client.post("/api/auth/register", json={"password": "secret1"}).status_code == 400
        assert client.post("/api/auth/register", json={"email": "", "password": "secret1"}).status_code == 400

    def test_invalid_email_rejected(self, client):
        response = client.post("/api/auth/register", json={"email": "not-an-email", "password": "secret1"})
        assert response.status_code == 400

    def test_unknown_fields_rejected(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "a@x.com", "password": "secret1", "role": "admin"},
        )
        assert response.status_code == 400

    def test_password_over_bcrypt_limit_rejected(self, client):
        response = client.post("/api/auth/register", json={"email": "a@x.com", "password": "x" * 73})
        assert response.status_code == 400

    def test_derived_username_collision_gets_suffix(self, client, db):
        register(client, "john.doe@x.com", "secret1")
        register(client, "johndoe@y.com", "secret1")
        assert db["users"].find_one({"email": "johndoe@y.com"})["username"] == "johndoe2"

    def test_many_derived_username_collisions_keep_counting(self, client, db):
        usernames = []
        for n in range(25):
            response = client.post("/api/auth/register", json={"email": f"john@d{n}.com", "password": "secret1"})
            assert response.status_code == 201, response.text
            usernames.append(response.json()["user"]["username"])
        assert usernames == ["john"] + [f"john{n}" for n in range(2, 26)]
        assert db["users"].count_documents({}) == 25

    def test_suffix_race_falls_back_to_random_suffix(self, client, app, monkeypatch):
        register(client, "john@a.com", "secret1")
        register(client, "john@b.com", "secret1")
        # Always point at a suffix that is already taken.
        monkeypatch.setattr(app.state.auth_service.users, "highest_username_suffix", lambda base: 1)
        response = client.post("/api/auth/register", json={"email": "john@c.com", "password": "secret1"})
        assert response.status_code == 201
        username = response.json()["user"]["username"]
        assert username.startswith("john")
        assert username not in ("john", "john2")

    def test_explicit_username_conflict(self, client):
        register(client, "a@x.com", "secret1", username="citizen")
        response = client.post(
            "/api/auth/register",
            json={"email": "b@x.com", "password": "secret1", "username": "citizen"},
        )
        assert response.status_code == 400
        assert "Username" in response.json()["message"]


class TestLogin:

    def test_login_issues_fresh_token(self, client):
        first, user_id = register(client, "a@x.com", "secret1")
        response = client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert response.status_code == 200
        body = response.json()
        assert body["token"] and body["token"] != first
        assert body["user"]["id"] == user_id

    def test_login_is_case_insensitive_on_email(self, client):
        register(client, "a@x.com", "secret1")
        response = client.post("/api/auth/login", json={"email": " A@x.com", "password": "secret1"})
        assert response.status_code == 200

    def test_wrong_password_and_unknown_email_look_the_same(self, client):
        register(client, "a@x.com", "secret1")
        wrong = client.post("/api/auth/login", json={"email": "a@x.com", "password": "wrong"})
        unknown = client.post("/api/auth/login", json={"email": "nobody@x.com", "password": "wrong"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"message": "Invalid email or password"}

    def test_missing_credentials(self, client):
        response = client.post("/api/auth/login", json={"email": "a@x.com", "password": ""})
        assert response.status_code == 400

    def test_blank_email_rejected(self, client):
        response = client.post("/api/auth/login", json={"email": "   ", "password": "secret1"})
        assert response.status_code == 400


class TestTokenGate:

    def test_verify_without_token(self, client):
        response = client.get("/api/auth/verify")
        assert response.status_code == 401
        assert response.json()["message"] == "Access token required"

    def test_verify_with_bad_token(self, client):
        response = client.get("/api/auth/verify", headers=auth_header("garbage"))
        assert response.status_code == 403

    def test_verify_with_valid_token(self, client, alice):
        response = client.get("/api/auth/verify", headers=alice["headers"])
        assert response.status_code == 200
        assert response.json()["user"] == {"userId": alice["id"], "email": "alice@civic.org"}

    def test_protected_routes_require_token(self, client):
        assert client.get("/api/issues").status_code == 401
        assert client.get("/api/issues/my").status_code == 401
        assert client.get("/api/user/profile").status_code == 401
        assert client.post("/api/auth/logout").status_code == 401

    def test_logout_is_stateless(self, client, alice):
        response = client.post("/api/auth/logout", headers=alice["headers"])
        assert response.status_code == 200
        assert response.json() == {"message": "Logout successful"}
        # No revocation list: the token keeps working until it expires.
        assert client.get("/api/auth/verify", headers=alice["headers"]).status_code == 200


class TestBasicRoutes:

    def test_root(self, client):
        assert "running" in client.get("/").json()["message"]

    def test_health_reports_database(self, client):
        body = client.get("/api/health").json()
        assert body["backend"] == "running"
        assert body["database"] == "connected"
