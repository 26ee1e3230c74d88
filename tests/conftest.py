import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from config import get_settings_for_testing
from core.accounts import AccountService
from core.media import UploadedMedia
from core.store import InMemorySubscriptionStore, InMemoryUserStore, Storage
from core.tokens import TokenIssuer
from exceptions import UploadError


class FakeMediaRelay:
    """Records uploads; fails any path containing a string in ``fail_on``
    and any delete of a public id in ``fail_delete``."""

    def __init__(self):
        self.uploaded: list[UploadedMedia] = []
        self.deleted: list[str] = []
        self.fail_on: set[str] = set()
        self.fail_delete: set[str] = set()
        self._counter = 0

    def upload(self, file_path: str) -> UploadedMedia:
        if any(marker in file_path for marker in self.fail_on):
            raise UploadError(file_path, "media host unavailable")
        self._counter += 1
        public_id = f"media-{self._counter}"
        media = UploadedMedia(url=f"https://media.test/{public_id}", public_id=public_id)
        self.uploaded.append(media)
        return media

    def delete(self, public_id: str) -> None:
        if public_id in self.fail_delete:
            raise UploadError(public_id, "delete failed")
        self.deleted.append(public_id)

    @property
    def live(self) -> set[str]:
        return {m.public_id for m in self.uploaded} - set(self.deleted)


@pytest.fixture
def settings(tmp_path):
    return get_settings_for_testing(
        storage_backend="memory",
        media_backend="local",
        local_media_dir=str(tmp_path / "media"),
        temp_file_dir=str(tmp_path / "uploads"),
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        cookie_secure=False,
        access_token_secret="test-access-secret",
        refresh_token_secret="test-refresh-secret",
    )


@pytest.fixture
def storage():
    return Storage(users=InMemoryUserStore(), subscriptions=InMemorySubscriptionStore())


@pytest.fixture
def relay():
    return FakeMediaRelay()


@pytest.fixture
def issuer(storage, settings):
    return TokenIssuer(storage.users, settings)


@pytest.fixture
def service(storage, relay, issuer, settings):
    return AccountService(
        store=storage.users,
        media_relay=relay,
        token_issuer=issuer,
        subscriptions=storage.subscriptions,
        settings=settings,
    )


@pytest.fixture
async def jane(service):
    """A registered user: JaneD / secret1."""
    return await service.register(
        full_name="Jane Doe",
        username="JaneD",
        email="jane@x.com",
        password="secret1",
        avatar_path="avatar.png",
    )


@pytest.fixture
def app(settings, storage, relay):
    return create_app(settings=settings, storage=storage, media_relay=relay)


@pytest.fixture
def client(app):
    return TestClient(app)
