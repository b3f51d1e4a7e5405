# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Shared fixtures for the suite. The repositories are replaced by in-memory
# versions with the same interface, so no PostgreSQL server is needed; the
# asset store writes into a per-test temporary directory.
# =============================================================================

import dataclasses
import itertools
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from litestar.di import Provide
from litestar.testing import TestClient

from app import create_app
from core.admins import Admin, AdminRepository
from core.assets import AssetStore
from core.config import AppConfig, AuthConfig, DatabaseConfig, UploadsConfig
from core.contacts import UPDATABLE_COLUMNS, Contact, ContactRepository
from core.errors import NotFound
from core.lifecycle import ContactLifecycle
from core.security import hash_password, issue_token

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
GIF_BYTES = b"GIF89a" + b"\x00" * 32

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "adminPassword123!"


# =============================================================================
# In-memory repositories
# =============================================================================

class InMemoryContacts(ContactRepository):
    """ContactRepository backed by a dict instead of PostgreSQL."""

    def __init__(self):
        super().__init__(conn=None)
        self.rows: dict[str, Contact] = {}
        self.order: dict[str, int] = {}
        self._seq = itertools.count()

    async def list_all(self) -> list[Contact]:
        def sort_key(contact):
            # NULL positions first, like the SQL ordering
            return (
                contact.position is not None,
                contact.position or "",
                self.order[contact.id],
            )

        return [dataclasses.replace(c) for c in sorted(self.rows.values(), key=sort_key)]

    async def get(self, contact_id: str) -> Contact:
        if contact_id not in self.rows:
            raise NotFound(detail="Contact not found")
        return dataclasses.replace(self.rows[contact_id])

    async def create(self, values: dict) -> Contact:
        contact = Contact(
            id=str(uuid4()),
            created_at=datetime.now(timezone.utc),
            **{column: values.get(column) for column in UPDATABLE_COLUMNS},
        )
        self.rows[contact.id] = contact
        self.order[contact.id] = next(self._seq)
        return dataclasses.replace(contact)

    async def update(self, contact_id: str, values: dict) -> Contact:
        existing = await self.get(contact_id)
        self.rows[contact_id] = dataclasses.replace(existing, **values)
        return dataclasses.replace(self.rows[contact_id])

    async def delete(self, contact_id: str) -> None:
        await self.get(contact_id)
        del self.rows[contact_id]
        del self.order[contact_id]


class InMemoryAdmins(AdminRepository):
    """AdminRepository backed by a list instead of PostgreSQL."""

    def __init__(self):
        super().__init__(conn=None)
        self.rows: list[Admin] = []

    async def first(self) -> Admin | None:
        return self.rows[0] if self.rows else None

    async def find_by_username(self, username: str) -> Admin | None:
        return next((a for a in self.rows if a.username == username), None)

    async def create(self, username: str, pwhash: str) -> Admin | None:
        if await self.find_by_username(username):
            return None
        admin = Admin(id=str(uuid4()), username=username, pwhash=pwhash)
        self.rows.append(admin)
        return admin


# =============================================================================
# Core fixtures
# =============================================================================

@pytest.fixture
def uploads_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def assets(uploads_dir):
    store = AssetStore(uploads_dir)
    store.ensure_directory()
    return store


@pytest.fixture
def contacts_repo():
    return InMemoryContacts()


@pytest.fixture
def lifecycle(contacts_repo, assets):
    return ContactLifecycle(contacts_repo, assets)


@pytest.fixture
def stored_files(uploads_dir):
    """Names of the files currently in the uploads directory."""
    return lambda: sorted(p.name for p in uploads_dir.iterdir())


# =============================================================================
# Application fixtures
# =============================================================================

@pytest.fixture
def config(uploads_dir):
    return AppConfig(
        database=DatabaseConfig(host=""),
        uploads=UploadsConfig(directory=str(uploads_dir)),
        auth=AuthConfig(jwt_secret="test-secret"),
    )


@pytest.fixture
def admins_repo():
    repo = InMemoryAdmins()
    repo.rows.append(
        Admin(id=str(uuid4()), username=ADMIN_USERNAME, pwhash=hash_password(ADMIN_PASSWORD))
    )
    return repo


@pytest.fixture
def client(config, contacts_repo, admins_repo):
    app = create_app(
        config,
        dependencies={
            "contacts": Provide(lambda: contacts_repo, sync_to_thread=False),
            "admins": Provide(lambda: admins_repo, sync_to_thread=False),
        },
    )
    with TestClient(app=app) as client:
        yield client


@pytest.fixture
def auth_headers(config, admins_repo):
    admin = admins_repo.rows[0]
    token = issue_token(admin.id, admin.username, config.auth.jwt_secret, 120)
    return {"Authorization": f"Bearer {token}"}
