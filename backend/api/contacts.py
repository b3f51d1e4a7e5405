from dataclasses import dataclass

from litestar import Controller, Request, delete, get, post, put
from litestar.datastructures import State

from core.auth import AuthenticatedAdmin
from core.contacts import ContactCreate, ContactRepository, ContactUpdate
from core.lifecycle import ContactLifecycle
from core.responses import ColumnMeta, MultiRowResponse, SingleRowResponse
from core.uploads import ImageForm, ImageUpload, read_image_form


CONTACT_COLUMNS = [
    ColumnMeta(key="id", label="ID", type="uuid"),
    ColumnMeta(key="name", label="Name", type="string"),
    ColumnMeta(key="phone", label="Phone", type="string"),
    ColumnMeta(key="mobile", label="Mobile", type="string"),
    ColumnMeta(key="position", label="Position", type="string"),
    ColumnMeta(key="designation", label="Designation", type="string"),
    ColumnMeta(key="image_path", label="Image", type="image"),
    ColumnMeta(key="created_at", label="Created", type="datetime"),
]


@dataclass
class ContactForm:
    """Multipart form for creating or updating a contact.

    Fields left out of the form are ``None``; on update they keep their
    stored value.
    """

    name: str | None = None
    phone: str | None = None
    mobile: str | None = None
    position: str | None = None
    designation: str | None = None
    image: ImageUpload | None = None

    @classmethod
    def from_form(cls, form: ImageForm) -> "ContactForm":
        # Unknown text fields are ignored.
        return cls(
            name=form.fields.get("name"),
            phone=form.fields.get("phone"),
            mobile=form.fields.get("mobile"),
            position=form.fields.get("position"),
            designation=form.fields.get("designation"),
            image=form.image,
        )

    def to_create(self) -> ContactCreate:
        return ContactCreate(
            name=self.name or "",
            phone=self.phone,
            mobile=self.mobile,
            position=self.position,
            designation=self.designation,
        )

    def to_update(self) -> ContactUpdate:
        return ContactUpdate(
            name=self.name,
            phone=self.phone,
            mobile=self.mobile,
            position=self.position,
            designation=self.designation,
        )


async def _read_contact_form(request: Request, state: State) -> ContactForm:
    form = await read_image_form(
        request.stream(),
        request.headers.get("content-type"),
        state.config.uploads.max_bytes,
    )
    return ContactForm.from_form(form)


class ContactsController(Controller):
    path = "/api/contacts"
    tags = ["contacts"]

    @get()
    async def list_contacts(self, contacts: ContactRepository) -> MultiRowResponse:
        """List all contacts ordered by position. Public."""
        return MultiRowResponse.of(CONTACT_COLUMNS, await contacts.list_all())

    @get("/{contact_id:str}")
    async def get_contact(
        self,
        contacts: ContactRepository,
        current_admin: AuthenticatedAdmin,
        contact_id: str,
    ) -> SingleRowResponse:
        """Get a single contact."""
        return SingleRowResponse.of(CONTACT_COLUMNS, await contacts.get(contact_id))

    # The form reader enforces its own caps, after checking each part's headers.
    @post(status_code=201, request_max_body_size=None)
    async def create_contact(
        self,
        lifecycle: ContactLifecycle,
        current_admin: AuthenticatedAdmin,
        state: State,
        request: Request,
    ) -> SingleRowResponse:
        """Create a contact, optionally with an image."""
        form = await _read_contact_form(request, state)
        contact = await lifecycle.create(form.to_create(), form.image, actor=current_admin)
        return SingleRowResponse.of(CONTACT_COLUMNS, contact)

    @put("/{contact_id:str}", request_max_body_size=None)
    async def update_contact(
        self,
        lifecycle: ContactLifecycle,
        current_admin: AuthenticatedAdmin,
        state: State,
        request: Request,
        contact_id: str,
    ) -> SingleRowResponse:
        """Partially update a contact, optionally replacing its image."""
        form = await _read_contact_form(request, state)
        contact = await lifecycle.update(
            contact_id, form.to_update(), form.image, actor=current_admin
        )
        return SingleRowResponse.of(CONTACT_COLUMNS, contact)

    @delete("/{contact_id:str}", status_code=204)
    async def delete_contact(
        self,
        lifecycle: ContactLifecycle,
        current_admin: AuthenticatedAdmin,
        contact_id: str,
    ) -> None:
        """Delete a contact and its image."""
        await lifecycle.delete(contact_id, actor=current_admin)
