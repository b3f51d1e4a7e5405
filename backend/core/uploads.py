"""Validation of uploaded contact images.

Only a small allow-list of image types is accepted. Contact forms are parsed
incrementally: each part's headers are checked as soon as they arrive, so a
rejected upload fails with ``ValidationError`` before its body is buffered,
no matter how large it is. The size caps are enforced while reading, so an
oversized stream is abandoned as soon as it crosses the limit.
"""

import pathlib
from collections.abc import AsyncIterable
from dataclasses import dataclass, field

from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header

from core.config import MAX_IMAGE_BYTES
from core.errors import PayloadTooLarge, ValidationError

ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif")
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/pjpeg",
    "image/png",
    "image/gif",
}

IMAGE_FIELD = "image"
MAX_FIELD_BYTES = 64 * 1024
MAX_FIELDS = 32

# Room for the text fields and multipart framing around a maximum-size image.
FORM_OVERHEAD_BYTES = 1024 * 1024


@dataclass
class ImageUpload:
    """An image upload held in memory, ready for the asset store."""

    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        return pathlib.PurePath(self.filename).suffix.lower()

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ImageForm:
    """Text fields and the optional image of a parsed contact form."""

    fields: dict[str, str] = field(default_factory=dict)
    image: ImageUpload | None = None


def validate_image_metadata(filename: str | None, content_type: str | None) -> str:
    """Check the declared filename and content type of an upload.

    Returns:
        The normalized (lower-case) extension, e.g. ``".png"``.

    Raises:
        ValidationError: If either the extension or the content type is
            not one of the accepted image types.
    """
    extension = pathlib.PurePath(filename or "").suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            detail="Images only! Allowed extensions: " + ", ".join(ALLOWED_EXTENSIONS),
            extra={"filename": filename},
        )

    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            detail="Images only! Unsupported content type",
            extra={"content_type": content_type},
        )

    return extension


def validate_image(upload: ImageUpload, max_bytes: int = MAX_IMAGE_BYTES) -> str:
    """Validate an in-memory upload, including its size."""
    extension = validate_image_metadata(upload.filename, upload.content_type)
    if upload.size > max_bytes:
        raise PayloadTooLarge(detail=_too_large_detail(max_bytes))
    return extension


class ImageFormParser:
    """Incremental ``multipart/form-data`` parser for a form with one image.

    Feed it the request body chunk by chunk. Text parts are collected into
    ``fields`` and the part named ``image`` into ``image``. Errors are raised
    from ``feed`` as soon as the offending bytes arrive:

    - a file part whose filename or content type is not an accepted image
      raises ``ValidationError`` right after its headers;
    - an image over ``max_image_bytes``, a text field over
      ``MAX_FIELD_BYTES`` or a body over the image cap plus
      ``FORM_OVERHEAD_BYTES`` raises ``PayloadTooLarge``.
    """

    def __init__(self, boundary: bytes, max_image_bytes: int = MAX_IMAGE_BYTES):
        self.max_image_bytes = max_image_bytes
        self.max_body_bytes = max_image_bytes + FORM_OVERHEAD_BYTES
        self.fields: dict[str, str] = {}
        self.image: ImageUpload | None = None
        self._received = 0
        self._start_part()
        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_part_begin": self._start_part,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
            },
        )

    def feed(self, chunk: bytes) -> None:
        # Parse first: part headers inside this chunk are judged before its size.
        self._parser.write(chunk)
        self._received += len(chunk)
        if self._received > self.max_body_bytes:
            raise PayloadTooLarge(detail=_too_large_detail(self.max_image_bytes))

    def finish(self) -> ImageForm:
        self._parser.finalize()
        return ImageForm(fields=self.fields, image=self.image)

    def _start_part(self) -> None:
        self._headers: dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._name = ""
        self._filename: str | None = None
        self._content_type = ""
        self._chunks: list[bytes] = []
        self._size = 0
        self._skip = False

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        name = options.get(b"name")
        if not name:
            raise ValidationError(detail="Malformed form part")
        self._name = name.decode("utf-8", "replace")

        filename = options.get(b"filename")
        if filename is None:
            if len(self.fields) >= MAX_FIELDS:
                raise ValidationError(detail="Too many form fields")
            return

        self._filename = filename.decode("utf-8", "replace")
        if not self._filename:
            # Browsers send an empty, nameless part when no file was picked.
            self._skip = True
            return
        if self._name != IMAGE_FIELD:
            raise ValidationError(detail=f"Unexpected file field: {self._name}")
        if self.image is not None:
            raise ValidationError(detail="Only one image may be uploaded")

        self._content_type = self._headers.get(b"content-type", b"").decode("latin-1")
        validate_image_metadata(self._filename, self._content_type)

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._skip:
            return
        self._size += end - start
        if self._filename is not None:
            if self._size > self.max_image_bytes:
                raise PayloadTooLarge(detail=_too_large_detail(self.max_image_bytes))
        elif self._size > MAX_FIELD_BYTES:
            raise PayloadTooLarge(detail=f"Form field too large: {self._name}")
        self._chunks.append(data[start:end])

    def _on_part_end(self) -> None:
        if self._skip:
            return
        value = b"".join(self._chunks)
        if self._filename is not None:
            self.image = ImageUpload(
                filename=self._filename,
                content_type=self._content_type,
                data=value,
            )
            return
        try:
            self.fields[self._name] = value.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError(detail=f"Form field is not valid UTF-8: {self._name}")


async def read_image_form(
    stream: AsyncIterable[bytes],
    content_type: str | None,
    max_image_bytes: int = MAX_IMAGE_BYTES,
) -> ImageForm:
    """Parse a ``multipart/form-data`` body carrying at most one image.

    Raises:
        ValidationError: If the body is not a well-formed multipart form, or
            a file part is not an accepted image.
        PayloadTooLarge: As soon as the image or the body crosses its cap.
    """
    media_type, options = parse_options_header((content_type or "").encode("latin-1"))
    if media_type != b"multipart/form-data":
        raise ValidationError(detail="Expected a multipart/form-data body")
    boundary = options.get(b"boundary")
    if not boundary:
        raise ValidationError(detail="Missing multipart boundary")

    parser = ImageFormParser(boundary, max_image_bytes)
    try:
        async for chunk in stream:
            parser.feed(chunk)
        return parser.finish()
    except MultipartParseError as exc:
        raise ValidationError(detail="Malformed multipart body") from exc


def _too_large_detail(max_bytes: int) -> str:
    return f"File too large (max: {max_bytes // (1024 * 1024)}MB)"
