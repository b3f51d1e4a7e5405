import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from litestar import Litestar
from litestar.config.cors import CORSConfig
from litestar.datastructures import State
from litestar.di import Provide
from litestar.logging import LoggingConfig
from litestar.static_files import create_static_files_router

from api.auth import AuthController
from api.contacts import ContactsController
from api.health import HealthController, PingController
from core.admins import AdminRepository, ensure_initial_admin
from core.assets import AssetStore
from core.auth import provide_current_admin
from core.config import AppConfig
from core.contacts import ContactRepository
from core.db import close_pool, ensure_schema, init_pool, provide_connection
from core.lifecycle import ContactLifecycle
from core.uploads import FORM_OVERHEAD_BYTES

logger = logging.getLogger(__name__)


async def provide_contact_repository(conn: psycopg.AsyncConnection) -> ContactRepository:
    return ContactRepository(conn)


async def provide_admin_repository(conn: psycopg.AsyncConnection) -> AdminRepository:
    return AdminRepository(conn)


async def provide_asset_store(state: State) -> AssetStore:
    return state.assets


async def provide_lifecycle(
    contacts: ContactRepository, assets: AssetStore, state: State
) -> ContactLifecycle:
    return ContactLifecycle(contacts, assets, state.config.uploads.max_bytes)


@asynccontextmanager
async def lifespan(app: Litestar) -> AsyncGenerator[None, None]:
    config: AppConfig = app.state.config

    if config.database.host:
        app.state.pool = await init_pool(config.database.conninfo)
        logger.info("Database pool initialized: %s", config.database.host)

        async with app.state.pool.connection() as conn:
            await ensure_schema(conn)
            await ensure_initial_admin(
                AdminRepository(conn),
                config.auth.default_admin_username,
                config.auth.default_admin_password,
            )
    else:
        logger.warning("No database host configured, running without a pool")

    try:
        yield
    finally:
        await close_pool(app.state.pop("pool", None))
        logger.info("Database pool closed")


def create_app(
    config: AppConfig | None = None,
    dependencies: dict[str, Provide] | None = None,
) -> Litestar:
    """Build the application.

    ``dependencies`` replaces individual providers by name, e.g. to swap the
    repositories for in-memory ones.
    """
    config = config or AppConfig.load()

    assets = AssetStore.from_config(config.uploads)
    assets.ensure_directory()

    providers: dict[str, Any] = {
        "conn": Provide(provide_connection),
        "contacts": Provide(provide_contact_repository),
        "admins": Provide(provide_admin_repository),
        "assets": Provide(provide_asset_store),
        "lifecycle": Provide(provide_lifecycle),
        "current_admin": Provide(provide_current_admin),
    }
    providers.update(dependencies or {})

    return Litestar(
        route_handlers=[
            AuthController,
            ContactsController,
            HealthController,
            PingController,
            create_static_files_router(
                path=assets.url_prefix,
                directories=[assets.directory],
            ),
        ],
        dependencies=providers,
        cors_config=CORSConfig(allow_origins=config.cors.allow_origins),
        logging_config=LoggingConfig(
            root={"level": config.server.log_level, "handlers": ["queue_listener"]},
            log_exceptions="always",
        ),
        # Contact forms stream under their own caps; this bounds every other body.
        request_max_body_size=FORM_OVERHEAD_BYTES,
        state=State({"config": config, "assets": assets}),
        lifespan=[lifespan],
    )


def main() -> None:
    import uvicorn

    config = AppConfig.load()
    uvicorn.run(create_app(config), host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
