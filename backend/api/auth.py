"""Authentication controller for administrator login."""

import logging
from dataclasses import dataclass

from litestar import Controller, get, post
from litestar.datastructures import State

from core.admins import AdminRepository
from core.auth import AuthenticatedAdmin
from core.errors import AuthenticationError
from core.security import issue_token, verify_password

logger = logging.getLogger(__name__)


@dataclass
class LoginRequest:
    username: str
    password: str


@dataclass
class LoginResponse:
    token: str
    token_type: str
    expires_in: int


@dataclass
class AdminResponse:
    id: str
    username: str | None


class AuthController(Controller):
    path = "/api"
    tags = ["auth"]

    @post("/login", status_code=200)
    async def login(
        self,
        admins: AdminRepository,
        state: State,
        data: LoginRequest,
    ) -> LoginResponse:
        """Exchange administrator credentials for a bearer token."""
        admin = await admins.find_by_username(data.username)

        if not admin or not verify_password(data.password, admin.pwhash):
            logger.warning("Failed login for %r", data.username)
            raise AuthenticationError(detail="Invalid credentials")

        auth = state.config.auth
        token = issue_token(
            admin.id,
            admin.username,
            auth.jwt_secret,
            auth.token_expire_minutes,
        )
        return LoginResponse(
            token=token,
            token_type="bearer",
            expires_in=auth.token_expire_minutes * 60,
        )

    @get("/me")
    async def get_current_admin(self, current_admin: AuthenticatedAdmin) -> AdminResponse:
        """Get the administrator the bearer token belongs to."""
        return AdminResponse(id=current_admin.id, username=current_admin.username)
