import logging
from dataclasses import dataclass

import psycopg

import core.db as db
from core.security import hash_password

logger = logging.getLogger(__name__)


def sql_select_first_admin() -> str:
    return """
        SELECT id::text AS id, username, pwhash
        FROM admins
        ORDER BY created_at
        LIMIT 1
    """


def sql_select_admin_by_username() -> str:
    return """
        SELECT id::text AS id, username, pwhash
        FROM admins
        WHERE username = %(username)s
    """


def sql_insert_admin() -> str:
    """Create an admin unless the username is taken."""
    return """
        INSERT INTO admins (username, pwhash)
        VALUES (%(username)s, %(pwhash)s)
        ON CONFLICT (username) DO NOTHING
        RETURNING id::text AS id, username, pwhash
    """


@dataclass
class Admin:
    id: str
    username: str
    pwhash: str


class AdminRepository:
    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self.conn = conn

    async def first(self) -> Admin | None:
        row = await db.fetch_one(self.conn, sql_select_first_admin())
        return Admin(**row) if row else None

    async def find_by_username(self, username: str) -> Admin | None:
        row = await db.fetch_one(
            self.conn, sql_select_admin_by_username(), {"username": username}
        )
        return Admin(**row) if row else None

    async def create(self, username: str, pwhash: str) -> Admin | None:
        row = await db.fetch_one(
            self.conn, sql_insert_admin(), {"username": username, "pwhash": pwhash}
        )
        return Admin(**row) if row else None


async def ensure_initial_admin(
    admins: AdminRepository, username: str, password: str
) -> bool:
    """Create the default administrator if there is none yet.

    Returns True if an administrator was created.
    """
    existing = await admins.first()
    if existing:
        logger.info("Admin user already exists")
        return False

    created = await admins.create(username, hash_password(password))
    if created is None:
        # Another process won the race for the same username.
        logger.info("Admin user already exists")
        return False

    logger.info("Initial admin user %r created", created.username)
    return True
