import json
import logging
import os
import pathlib
import secrets
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 20 * 1024 * 1024


@dataclass
class DatabaseConfig:
    host: str = "localhost"
    port: int = 5432
    name: str = "contacts_db"
    user: str = "contacts"
    password: str = ""

    @property
    def conninfo(self) -> str:
        return (
            f"host={self.host} port={self.port} "
            f"dbname={self.name} user={self.user} password={self.password}"
        )


@dataclass
class UploadsConfig:
    directory: str = "uploads"
    url_prefix: str = "/uploads"
    name_prefix: str = "contact"
    max_bytes: int = MAX_IMAGE_BYTES


@dataclass
class AuthConfig:
    jwt_secret: str = ""
    token_expire_minutes: int = 120
    default_admin_username: str = "admin"
    default_admin_password: str = "adminPassword123!"


@dataclass
class CorsConfig:
    allow_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"


@dataclass
class AppConfig:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    uploads: UploadsConfig = field(default_factory=UploadsConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    cors: CorsConfig = field(default_factory=CorsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def __post_init__(self) -> None:
        if not self.auth.jwt_secret:
            logger.warning(
                "No jwt_secret configured, using a random secret; "
                "tokens will not survive a restart"
            )
            self.auth.jwt_secret = secrets.token_urlsafe(48)

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        return cls(
            database=DatabaseConfig(**data.get("database", {})),
            uploads=UploadsConfig(**data.get("uploads", {})),
            auth=AuthConfig(**data.get("auth", {})),
            cors=CorsConfig(**data.get("cors", {})),
            server=ServerConfig(**data.get("server", {})),
        )

    @classmethod
    def load(cls) -> "AppConfig":
        config_path = os.environ.get("CONFIG_FILE", "/run/secrets/config.json")
        path = pathlib.Path(config_path)

        if path.exists():
            with open(path) as f:
                config = cls.from_dict(json.load(f))
        else:
            logger.warning("Config file not found at %s", config_path)
            config = cls()

        port = os.environ.get("PORT")
        if port:
            config.server.port = int(port)
        return config
