"""
Tests for authentication endpoints (signup, login, profile).

These tests verify:
  - Successful signup creates a MEMBER and returns a JWT
  - Duplicate email signup is rejected (409 Conflict)
  - Successful login returns a valid JWT
  - Wrong password and unknown email get the same 401 (anti-enumeration)
  - Short passwords and malformed emails are rejected (422)
  - /auth/me returns the caller's profile and requires a token
"""


SIGNUP = {
    "email": "newuser@example.com",
    "password": "StrongPass99!",
    "display_name": "Jane Doe",
}


class TestSignup:
    """Tests for POST /auth/signup."""

    async def test_signup_success(self, client):
        """A valid signup should return 201 with user_id, email, role and token."""
        response = await client.post("/auth/signup", json=SIGNUP)

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["role"] == "member"
        assert data["token_type"] == "bearer"
        assert "token" in data
        assert "user_id" in data

    async def test_signup_duplicate_email(self, client):
        """Signing up with an already-registered email should return 409."""
        await client.post("/auth/signup", json=SIGNUP)
        response = await client.post("/auth/signup", json=SIGNUP)

        assert response.status_code == 409
        assert response.json()["error_type"] == "duplicate_email"

    async def test_signup_short_password(self, client):
        response = await client.post("/auth/signup", json={**SIGNUP, "password": "short"})
        assert response.status_code == 422

    async def test_signup_invalid_email(self, client):
        response = await client.post("/auth/signup", json={**SIGNUP, "email": "not-an-email"})
        assert response.status_code == 422

    async def test_signup_missing_display_name(self, client):
        body = {k: v for k, v in SIGNUP.items() if k != "display_name"}
        response = await client.post("/auth/signup", json=body)
        assert response.status_code == 422

    async def test_signup_cannot_choose_role(self, client):
        """Extra fields are ignored: every signup is a member."""
        response = await client.post("/auth/signup", json={**SIGNUP, "role": "admin"})

        assert response.status_code == 201
        assert response.json()["role"] == "member"


class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client):
        await client.post("/auth/signup", json=SIGNUP)
        response = await client.post(
            "/auth/login",
            json={"email": SIGNUP["email"], "password": SIGNUP["password"]},
        )

        assert response.status_code == 200
        assert "token" in response.json()

    async def test_login_wrong_password(self, client):
        await client.post("/auth/signup", json=SIGNUP)
        response = await client.post(
            "/auth/login",
            json={"email": SIGNUP["email"], "password": "WrongPass99!"},
        )

        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_credentials"

    async def test_login_unknown_email_same_error(self, client):
        """Unknown emails get the exact same response as wrong passwords."""
        response = await client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": "Whatever99!"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"


class TestProfile:
    """Tests for GET /auth/me."""

    async def test_me_returns_profile(self, buyer_client):
        response = await buyer_client.get("/auth/me")

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "buyer@example.com"
        assert data["display_name"] == "Bea Buyer"
        assert data["role"] == "member"
        assert "hashed_password" not in data

    async def test_me_admin_role(self, admin_client):
        response = await admin_client.get("/auth/me")
        assert response.json()["role"] == "admin"

    async def test_me_requires_token(self, client):
        response = await client.get("/auth/me")
        assert response.status_code == 401

    async def test_me_rejects_garbage_token(self, client):
        response = await client.get(
            "/auth/me", headers={"Authorization": "Bearer not.a.jwt"}
        )
        assert response.status_code == 401


class TestRequestId:

    async def test_request_id_generated(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.headers["X-Request-ID"]

    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
