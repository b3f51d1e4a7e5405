from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any
from uuid import UUID

import psycopg

import core.db as db
from core.errors import NotFound


# ---------------------------------------------------------------------------
# SQL Queries
# ---------------------------------------------------------------------------

CONTACT_COLUMNS_SQL = """
    id::text AS id, name, phone, mobile, position, designation,
    image_path, created_at
"""


def sql_select_contacts() -> str:
    """All contacts, by position (byte order) then insertion order."""
    return f"""
        SELECT {CONTACT_COLUMNS_SQL}
        FROM contacts
        ORDER BY position COLLATE "C" ASC NULLS FIRST, seq ASC
    """


def sql_select_contact_by_id() -> str:
    return f"""
        SELECT {CONTACT_COLUMNS_SQL}
        FROM contacts
        WHERE id = %(id)s
    """


def sql_insert_contact() -> str:
    return f"""
        INSERT INTO contacts (
            name, phone, mobile, position, designation, image_path
        )
        VALUES (
            %(name)s, %(phone)s, %(mobile)s, %(position)s,
            %(designation)s, %(image_path)s
        )
        RETURNING {CONTACT_COLUMNS_SQL}
    """


def sql_update_contact(columns: set[str]) -> str:
    """Update the given columns, returning the updated row."""
    updates = [f"{c} = %({c})s" for c in sorted(columns) if c in UPDATABLE_COLUMNS]
    if not updates:
        raise ValueError("No valid fields to update")
    return f"""
        UPDATE contacts
        SET {", ".join(updates)}
        WHERE id = %(id)s
        RETURNING {CONTACT_COLUMNS_SQL}
    """


def sql_delete_contact() -> str:
    return "DELETE FROM contacts WHERE id = %(id)s RETURNING id"


UPDATABLE_COLUMNS = {
    "name",
    "phone",
    "mobile",
    "position",
    "designation",
    "image_path",
}


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@dataclass
class Contact:
    id: str
    name: str
    phone: str | None = None
    mobile: str | None = None
    position: str | None = None
    designation: str | None = None
    image_path: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Contact":
        return cls(**{f.name: row.get(f.name) for f in fields(cls)})


@dataclass
class ContactCreate:
    """Fields for a new contact."""

    name: str
    phone: str | None = None
    mobile: str | None = None
    position: str | None = None
    designation: str | None = None

    def values(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone or None,
            "mobile": self.mobile or None,
            "position": self.position or None,
            "designation": self.designation or None,
        }


@dataclass
class ContactUpdate:
    """Partial update for contact fields.

    ``None`` means "not provided" and leaves the stored value alone. An empty
    string on an optional field clears it.
    """

    name: str | None = None
    phone: str | None = None
    mobile: str | None = None
    position: str | None = None
    designation: str | None = None

    def changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            changes[f.name] = value if f.name == "name" else (value or None)
        return changes


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


def _parse_id(contact_id: str) -> UUID:
    # Ids are opaque to callers; anything that is not one of ours is unknown.
    try:
        return UUID(str(contact_id))
    except ValueError:
        raise NotFound(detail="Contact not found")


class ContactRepository:
    """CRUD access to the contacts table."""

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self.conn = conn

    async def list_all(self) -> list[Contact]:
        rows = await db.fetch_all(self.conn, sql_select_contacts())
        return [Contact.from_row(row) for row in rows]

    async def get(self, contact_id: str) -> Contact:
        row = await db.fetch_one(
            self.conn, sql_select_contact_by_id(), {"id": _parse_id(contact_id)}
        )
        if not row:
            raise NotFound(detail="Contact not found")
        return Contact.from_row(row)

    async def create(self, values: dict[str, Any]) -> Contact:
        params = {column: values.get(column) for column in UPDATABLE_COLUMNS}
        row = await db.fetch_one(self.conn, sql_insert_contact(), params)
        if not row:
            raise RuntimeError("Insert returned no row")
        return Contact.from_row(row)

    async def update(self, contact_id: str, values: dict[str, Any]) -> Contact:
        params = {"id": _parse_id(contact_id), **values}
        row = await db.fetch_one(self.conn, sql_update_contact(set(values)), params)
        if not row:
            raise NotFound(detail="Contact not found")
        return Contact.from_row(row)

    async def delete(self, contact_id: str) -> None:
        row = await db.fetch_one(
            self.conn, sql_delete_contact(), {"id": _parse_id(contact_id)}
        )
        if not row:
            raise NotFound(detail="Contact not found")
