from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.main import create_app

API = "/api/v1/users"

JANE = {
    "fullname": "Jane Doe",
    "username": "JaneD",
    "email": "jane@x.com",
    "password": "secret1",
}


def avatar_file(name="avatar.png"):
    return (name, b"\x89PNG fake image", "image/png")


def register(client, data=None, files=None):
    return client.post(
        f"{API}/register",
        data=data if data is not None else JANE,
        files=files if files is not None else {"avatar": avatar_file()},
    )


def login(client, **credentials):
    return client.post(f"{API}/login", json=credentials or {"username": "JaneD", "password": "secret1"})


def refresh_with_body(client, token):
    client.cookies.clear()
    return client.post(f"{API}/refresh-token", json={"refreshToken": token})


def assert_error(response, status_code, error_type):
    body = response.json()
    assert response.status_code == status_code, body
    assert body["status"] == status_code
    assert body["success"] is False
    assert body["error_type"] == error_type
    assert body["message"]


class TestRegisterEndpoint:
    def test_register_returns_201_and_profile(self, client):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["username"] == "janed"
        assert "password_hash" not in body["data"]
        assert "refresh_token" not in body["data"]

    def test_register_with_cover_image(self, client, relay):
        response = register(client, files={
            "avatar": avatar_file(),
            "coverImage": avatar_file("cover.png"),
        })

        assert response.status_code == 201
        assert response.json()["data"]["cover_image_url"]
        assert len(relay.uploaded) == 2

    def test_duplicate_username_is_409(self, client):
        register(client)

        response = register(client, data={**JANE, "username": "JANED", "email": "other@x.com"})

        assert_error(response, 409, "ConflictError")

    def test_missing_avatar_is_400(self, client):
        response = register(client, files={"coverImage": avatar_file("cover.png")})

        assert_error(response, 400, "ValidationError")

    def test_empty_field_is_400(self, client):
        response = register(client, data={**JANE, "fullname": "  "})

        assert_error(response, 400, "ValidationError")

    def test_unsupported_format_is_400(self, client, storage):
        response = register(client, files={"avatar": ("avatar.txt", b"hello", "text/plain")})

        assert_error(response, 400, "UnsupportedImageFormatError")
        assert len(storage.users) == 0

    def test_upload_failure_is_502_and_persists_nothing(self, client, storage, relay):
        relay.fail_on.add(".png")

        response = register(client)

        assert_error(response, 502, "UploadError")
        assert len(storage.users) == 0

    def test_temp_files_are_removed(self, client, settings):
        register(client)

        assert list(Path(settings.temp_file_dir).iterdir()) == []


class TestSessionEndpoints:
    def test_login_sets_tokens_and_cookies(self, client):
        register(client)

        response = login(client)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["accessToken"] and data["refreshToken"]
        assert data["user"]["username"] == "janed"
        assert response.cookies["refreshToken"] == data["refreshToken"]
        assert response.cookies["accessToken"] == data["accessToken"]
        set_cookie = response.headers.get_list("set-cookie")
        assert all("httponly" in header.lower() for header in set_cookie)

    def test_login_by_email(self, client):
        register(client)

        response = login(client, email="jane@x.com", password="secret1")

        assert response.status_code == 200

    def test_login_unknown_user_is_404(self, client):
        assert_error(login(client, username="nobody", password="x"), 404, "NotFoundError")

    def test_login_wrong_password_is_401(self, client):
        register(client)

        assert_error(login(client, username="janed", password="wrong"), 401, "InvalidCredentialsError")

    def test_refresh_scenario(self, client):
        register(client)
        original = login(client).json()["data"]["refreshToken"]

        response = refresh_with_body(client, original)
        assert response.status_code == 200
        rotated = response.json()["data"]["refreshToken"]
        assert rotated != original

        reuse = refresh_with_body(client, original)
        assert_error(reuse, 401, "TokenReuseError")

        assert refresh_with_body(client, rotated).status_code == 200

    def test_refresh_from_cookie(self, client):
        register(client)
        original = login(client).json()["data"]["refreshToken"]

        response = client.post(f"{API}/refresh-token")

        assert response.status_code == 200
        assert response.json()["data"]["refreshToken"] != original
        assert client.cookies["refreshToken"] == response.json()["data"]["refreshToken"]

    def test_refresh_without_token_is_401(self, client):
        assert_error(client.post(f"{API}/refresh-token"), 401, "UnauthenticatedError")

    def test_refresh_with_garbage_is_401(self, client):
        assert_error(refresh_with_body(client, "not-a-token"), 401, "InvalidTokenError")

    def test_logout_then_refresh_fails(self, client):
        register(client)
        tokens = login(client).json()["data"]

        response = client.post(
            f"{API}/logout",
            headers={"Authorization": f"Bearer {tokens['accessToken']}"},
        )
        assert response.status_code == 200
        assert "refreshToken" not in client.cookies

        assert refresh_with_body(client, tokens["refreshToken"]).status_code == 401

    def test_logout_requires_access_token(self, client):
        assert_error(client.post(f"{API}/logout"), 401, "UnauthenticatedError")

    def test_logout_with_cookie(self, client):
        register(client)
        login(client)

        assert client.post(f"{API}/logout").status_code == 200


class TestProfileEndpoints:
    @pytest.fixture
    def auth(self, client):
        register(client)
        token = login(client).json()["data"]["accessToken"]
        client.cookies.clear()
        return {"Authorization": f"Bearer {token}"}

    def test_me(self, client, auth):
        response = client.get(f"{API}/me", headers=auth)

        assert response.status_code == 200
        assert response.json()["data"]["email"] == "jane@x.com"

    def test_me_with_bad_token(self, client):
        response = client.get(f"{API}/me", headers={"Authorization": "Bearer nope"})

        assert_error(response, 401, "InvalidTokenError")
        assert response.headers["www-authenticate"] == "Bearer"

    def test_update_account(self, client, auth):
        response = client.patch(f"{API}/me", headers=auth, json={"fullname": "Jane Q", "email": "jq@x.com"})

        assert response.status_code == 200
        assert response.json()["data"]["full_name"] == "Jane Q"

    def test_change_password(self, client, auth):
        response = client.post(
            f"{API}/change-password",
            headers=auth,
            json={"oldPassword": "secret1", "newPassword": "secret2"},
        )
        assert response.status_code == 200

        assert login(client, username="janed", password="secret2").status_code == 200

    def test_change_password_wrong_old(self, client, auth):
        response = client.post(
            f"{API}/change-password",
            headers=auth,
            json={"oldPassword": "nope", "newPassword": "secret2"},
        )
        assert_error(response, 401, "InvalidCredentialsError")

    def test_update_avatar(self, client, auth, relay):
        response = client.patch(f"{API}/avatar", headers=auth, files={"avatar": avatar_file("new.png")})

        assert response.status_code == 200
        assert response.json()["data"]["avatar_url"] == relay.uploaded[-1].url

    def test_update_avatar_without_file(self, client, auth):
        assert_error(client.patch(f"{API}/avatar", headers=auth), 400, "ValidationError")

    def test_update_cover_image(self, client, auth, relay):
        response = client.patch(f"{API}/cover-image", headers=auth, files={"coverImage": avatar_file("c.png")})

        assert response.status_code == 200
        assert response.json()["data"]["cover_image_url"] == relay.uploaded[-1].url

    def test_channel_profile(self, client, auth):
        response = client.get(f"{API}/channel/JaneD")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["username"] == "janed"
        assert data["subscribers_count"] == 0
        assert data["is_subscribed"] is False

    def test_unknown_channel_is_404(self, client):
        assert_error(client.get(f"{API}/channel/nobody"), 404, "NotFoundError")


class TestHealth:
    def test_health_reports_memory_storage_as_degraded(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["services"]["database"]["status"] == "degraded"
        assert body["status"] == "degraded"

    def test_probes(self, client):
        assert client.get("/api/v1/health/live").json()["status"] == "alive"
        assert client.get("/api/v1/health/ready").json()["status"] == "ready"


@pytest.fixture
def make_client(settings, storage, relay):
    """Client for an app built with some settings changed."""
    def build(**overrides):
        app = create_app(settings=settings.model_copy(update=overrides), storage=storage, media_relay=relay)
        return TestClient(app)
    return build


class TestRateLimits:
    def test_configured_login_limit_is_enforced(self, make_client):
        client = make_client(rate_limit_enabled=True, login_rate_limit="1/minute")

        assert login(client).status_code == 404
        assert_error(login(client), 429, "RateLimitExceeded")

    def test_counters_are_per_app(self, make_client):
        first = make_client(rate_limit_enabled=True, login_rate_limit="1/minute")
        second = make_client(rate_limit_enabled=True, login_rate_limit="1/minute")

        assert login(first).status_code == 404
        assert login(second).status_code == 404

    def test_disabled_limits(self, make_client):
        client = make_client(rate_limit_enabled=False, login_rate_limit="1/minute")

        assert [login(client).status_code for _ in range(3)] == [404, 404, 404]


class TestErrorBodies:
    def test_unknown_route(self, client):
        assert_error(client.get("/api/v1/nope"), 404, "HTTPException")

    def test_wrong_method(self, client):
        assert_error(client.delete(f"{API}/login"), 405, "HTTPException")

    def test_service_unavailable(self, app, client):
        app.state.account_service = None

        assert_error(client.get(f"{API}/me"), 503, "HTTPException")

    def test_file_too_large(self, make_client):
        client = make_client(max_upload_size_mb=0)

        assert_error(register(client), 413, "FileTooLargeError")
