"""Error types raised by the contact core.

Each one is a Litestar HTTP exception, so handlers can let them propagate
and the framework renders the matching status code.
"""

from litestar.exceptions import (
    ClientException,
    InternalServerException,
    NotAuthorizedException,
    NotFoundException,
)


class ValidationError(ClientException):
    """Bad contact fields or a rejected upload."""

    status_code = 400


class AuthenticationError(NotAuthorizedException):
    """Bad credentials or a missing, invalid or expired bearer token."""


class NotFound(NotFoundException):
    """Unknown contact id."""


class PayloadTooLarge(ClientException):
    """Upload larger than the configured cap."""

    status_code = 413


class StorageError(InternalServerException):
    """The asset store could not write a file."""
