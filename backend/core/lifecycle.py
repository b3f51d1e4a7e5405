"""Keeps contact records and their image files consistent.

The database and the uploads directory are not covered by one transaction,
so every mutation is ordered to fail towards an orphaned file (invisible)
rather than a record that points at a missing file (visible):

* create: the image is written before the record that references it.
* update: the new image is written first, the record is persisted, and
  only then is the superseded image removed.
* delete: the record is removed first, then its image.

Image removal is best-effort and never fails the surrounding mutation.
"""

import logging

from core.assets import AssetStore
from core.auth import AuthenticatedAdmin
from core.config import MAX_IMAGE_BYTES
from core.contacts import Contact, ContactCreate, ContactRepository, ContactUpdate
from core.errors import NotFound, ValidationError
from core.uploads import ImageUpload, validate_image

logger = logging.getLogger(__name__)


class ContactLifecycle:
    def __init__(
        self,
        contacts: ContactRepository,
        assets: AssetStore,
        max_image_bytes: int = MAX_IMAGE_BYTES,
    ) -> None:
        self.contacts = contacts
        self.assets = assets
        self.max_image_bytes = max_image_bytes

    async def create(
        self,
        data: ContactCreate,
        image: ImageUpload | None = None,
        actor: AuthenticatedAdmin | None = None,
    ) -> Contact:
        values = data.values()
        values["name"] = _required_name(data.name)

        # The file must be durable before any record can reference it. If
        # the insert below fails the file is left orphaned: the insert may
        # still have committed, and removing the file could then leave a
        # dangling reference.
        values["image_path"] = await self._store(image) if image else None

        contact = await self.contacts.create(values)
        logger.info(
            "Contact %s created by %s (image: %s)",
            contact.id,
            _who(actor),
            contact.image_path,
        )
        return contact

    async def update(
        self,
        contact_id: str,
        data: ContactUpdate,
        image: ImageUpload | None = None,
        actor: AuthenticatedAdmin | None = None,
    ) -> Contact:
        existing = await self.contacts.get(contact_id)

        changes = data.changes()
        if "name" in changes:
            changes["name"] = _required_name(changes["name"])

        new_path = None
        if image:
            new_path = await self._store(image)
            changes["image_path"] = new_path

        if not changes:
            return existing

        try:
            contact = await self.contacts.update(contact_id, changes)
        except NotFound:
            # Deleted underneath us, so nothing can reference the new file.
            await self.assets.delete(new_path)
            raise

        if new_path and existing.image_path and existing.image_path != new_path:
            await self.assets.delete(existing.image_path)

        logger.info(
            "Contact %s updated by %s (fields: %s)",
            contact.id,
            _who(actor),
            ", ".join(sorted(changes)),
        )
        return contact

    async def delete(
        self,
        contact_id: str,
        actor: AuthenticatedAdmin | None = None,
    ) -> None:
        existing = await self.contacts.get(contact_id)
        await self.contacts.delete(contact_id)
        await self.assets.delete(existing.image_path)
        logger.info("Contact %s deleted by %s", contact_id, _who(actor))

    async def _store(self, image: ImageUpload) -> str:
        extension = validate_image(image, self.max_image_bytes)
        return await self.assets.store(image.data, extension)


def _required_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(detail="name is required")
    return name


def _who(actor: AuthenticatedAdmin | None) -> str:
    if actor is None:
        return "system"
    return actor.username or actor.id
