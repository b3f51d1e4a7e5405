# =============================================================================
# tests/test_lifecycle.py - Contact/Image Lifecycle Tests
# =============================================================================
# Covers the record/file consistency rules:
# - create writes the image before the record
# - update writes the new image, persists, then removes the old image
# - delete removes the record, then the image
# - unknown ids are NotFound with no filesystem side effects
# =============================================================================

import pytest

import core.assets
from core.contacts import ContactCreate, ContactUpdate
from core.errors import NotFound, PayloadTooLarge, ValidationError
from core.lifecycle import ContactLifecycle
from core.uploads import ImageUpload
from tests.conftest import GIF_BYTES, PNG_BYTES, InMemoryContacts

UNKNOWN_ID = "00000000-0000-0000-0000-000000000000"


def png(name="photo.png"):
    return ImageUpload(filename=name, content_type="image/png", data=PNG_BYTES)


def gif(name="anim.gif"):
    return ImageUpload(filename=name, content_type="image/gif", data=GIF_BYTES)


class TestCreate:
    async def test_without_image(self, lifecycle, stored_files):
        contact = await lifecycle.create(ContactCreate(name="Ada", position="1"))

        assert contact.id
        assert contact.image_path is None
        assert stored_files() == []

    async def test_with_image(self, lifecycle, assets):
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())

        assert contact.image_path.endswith(".png")
        assert assets.exists(contact.image_path)

    async def test_blank_name_rejected_before_any_write(self, lifecycle, contacts_repo, stored_files):
        with pytest.raises(ValidationError):
            await lifecycle.create(ContactCreate(name="   "), png())

        assert stored_files() == []
        assert contacts_repo.rows == {}

    @pytest.mark.parametrize(
        "upload",
        [
            ImageUpload("virus.exe", "image/png", PNG_BYTES),
            ImageUpload("photo.png", "text/plain", PNG_BYTES),
        ],
    )
    async def test_bad_upload_rejected(self, lifecycle, contacts_repo, stored_files, upload):
        with pytest.raises(ValidationError):
            await lifecycle.create(ContactCreate(name="Ada"), upload)

        assert stored_files() == []
        assert contacts_repo.rows == {}

    async def test_oversized_upload_rejected(self, contacts_repo, assets, stored_files):
        lifecycle = ContactLifecycle(contacts_repo, assets, max_image_bytes=8)

        with pytest.raises(PayloadTooLarge):
            await lifecycle.create(ContactCreate(name="Ada"), png())

        assert stored_files() == []

    async def test_image_is_on_disk_before_record_is_written(self, assets):
        seen = []

        class Spy(InMemoryContacts):
            async def create(self, values):
                seen.append(assets.exists(values["image_path"]))
                return await super().create(values)

        await ContactLifecycle(Spy(), assets).create(ContactCreate(name="Ada"), png())

        assert seen == [True]

    async def test_optional_fields_stored(self, lifecycle):
        contact = await lifecycle.create(
            ContactCreate(
                name="Ada",
                phone="555-0100",
                mobile="555-0199",
                position="3",
                designation="Engineer",
            )
        )

        assert (contact.phone, contact.mobile, contact.position, contact.designation) == (
            "555-0100",
            "555-0199",
            "3",
            "Engineer",
        )
        assert contact.created_at is not None


class TestUpdate:
    async def test_new_image_replaces_old(self, lifecycle, assets, stored_files):
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())
        old_path = contact.image_path

        updated = await lifecycle.update(contact.id, ContactUpdate(), gif())

        assert updated.image_path.endswith(".gif")
        assert assets.exists(updated.image_path)
        assert not assets.exists(old_path)
        assert len(stored_files()) == 1

    async def test_omitting_image_keeps_it(self, lifecycle, assets):
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())

        updated = await lifecycle.update(
            contact.id,
            ContactUpdate(name="Ada L.", phone="1", mobile="2", position="9", designation="CTO"),
        )

        assert updated.image_path == contact.image_path
        assert assets.exists(updated.image_path)

    async def test_partial_update_leaves_other_fields(self, lifecycle):
        contact = await lifecycle.create(
            ContactCreate(name="Ada", phone="555-0100", position="1")
        )

        updated = await lifecycle.update(contact.id, ContactUpdate(position="2"))

        assert updated.name == "Ada"
        assert updated.phone == "555-0100"
        assert updated.position == "2"
        assert updated.created_at == contact.created_at

    async def test_empty_string_clears_optional_field(self, lifecycle):
        contact = await lifecycle.create(ContactCreate(name="Ada", phone="555-0100"))

        updated = await lifecycle.update(contact.id, ContactUpdate(phone=""))

        assert updated.phone is None

    async def test_blank_name_rejected(self, lifecycle, stored_files):
        contact = await lifecycle.create(ContactCreate(name="Ada"))

        with pytest.raises(ValidationError):
            await lifecycle.update(contact.id, ContactUpdate(name=""), png())

        assert stored_files() == []

    async def test_no_changes_returns_existing(self, lifecycle):
        contact = await lifecycle.create(ContactCreate(name="Ada"))

        assert await lifecycle.update(contact.id, ContactUpdate()) == contact

    async def test_unknown_id(self, lifecycle, stored_files):
        with pytest.raises(NotFound):
            await lifecycle.update(UNKNOWN_ID, ContactUpdate(name="Ghost"), png())

        assert stored_files() == []

    async def test_old_image_kept_until_record_persisted(self, assets):
        events = []

        class Spy(InMemoryContacts):
            async def update(self, contact_id, values):
                existing = await self.get(contact_id)
                events.append(("old present", assets.exists(existing.image_path)))
                events.append(("new present", assets.exists(values["image_path"])))
                return await super().update(contact_id, values)

        lifecycle = ContactLifecycle(Spy(), assets)
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())

        updated = await lifecycle.update(contact.id, ContactUpdate(), gif())

        assert events == [("old present", True), ("new present", True)]
        assert not assets.exists(contact.image_path)
        assert assets.exists(updated.image_path)

    async def test_contact_deleted_concurrently(self, assets, stored_files):
        class Vanishing(InMemoryContacts):
            async def update(self, contact_id, values):
                await self.delete(contact_id)
                return await super().update(contact_id, values)

        lifecycle = ContactLifecycle(Vanishing(), assets)
        contact = await lifecycle.create(ContactCreate(name="Ada"))

        with pytest.raises(NotFound):
            await lifecycle.update(contact.id, ContactUpdate(), png())

        assert stored_files() == []

    async def test_failed_cleanup_does_not_fail_update(self, lifecycle, assets, monkeypatch):
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())

        def refuse(target):
            raise PermissionError("busy")

        monkeypatch.setattr(core.assets, "_unlink_if_present", refuse)

        updated = await lifecycle.update(contact.id, ContactUpdate(), gif())

        assert updated.image_path.endswith(".gif")
        assert assets.exists(contact.image_path)  # orphaned, not dangling


class TestDelete:
    async def test_removes_record_and_image(self, lifecycle, assets, stored_files):
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())

        await lifecycle.delete(contact.id)

        assert not assets.exists(contact.image_path)
        assert stored_files() == []
        with pytest.raises(NotFound):
            await lifecycle.contacts.get(contact.id)

    async def test_without_image(self, lifecycle):
        contact = await lifecycle.create(ContactCreate(name="Ada"))

        await lifecycle.delete(contact.id)

        with pytest.raises(NotFound):
            await lifecycle.contacts.get(contact.id)

    async def test_unknown_id(self, lifecycle, assets, stored_files):
        await assets.store(PNG_BYTES, ".png")

        with pytest.raises(NotFound):
            await lifecycle.delete(UNKNOWN_ID)

        assert len(stored_files()) == 1

    async def test_record_removed_before_image(self, assets):
        seen = []

        class Spy(InMemoryContacts):
            async def delete(self, contact_id):
                existing = await self.get(contact_id)
                seen.append(assets.exists(existing.image_path))
                await super().delete(contact_id)

        lifecycle = ContactLifecycle(Spy(), assets)
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())

        await lifecycle.delete(contact.id)

        assert seen == [True]
        assert not assets.exists(contact.image_path)

    async def test_missing_file_does_not_fail_delete(self, lifecycle, assets):
        contact = await lifecycle.create(ContactCreate(name="Ada"), png())
        assets.resolve(contact.image_path).unlink()

        await lifecycle.delete(contact.id)

        with pytest.raises(NotFound):
            await lifecycle.contacts.get(contact.id)


class TestScenarios:
    async def test_ada(self, lifecycle, assets, stored_files):
        ada = await lifecycle.create(ContactCreate(name="Ada", position="1"))
        assert ada.image_path is None

        ada = await lifecycle.update(ada.id, ContactUpdate(position="2"), png())
        assert ada.image_path.endswith(".png")
        png_path = ada.image_path

        ada = await lifecycle.update(ada.id, ContactUpdate(name="Ada L."))
        assert ada.name == "Ada L."
        assert ada.image_path == png_path

        await lifecycle.delete(ada.id)
        with pytest.raises(NotFound):
            await lifecycle.contacts.get(ada.id)
        assert not assets.exists(png_path)
        assert stored_files() == []

    async def test_listing_order(self, lifecycle, contacts_repo):
        for position in ["3", "1", "2"]:
            await lifecycle.create(ContactCreate(name=f"Contact {position}", position=position))

        listed = await contacts_repo.list_all()

        assert [c.position for c in listed] == ["1", "2", "3"]
