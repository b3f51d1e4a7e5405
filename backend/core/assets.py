"""On-disk storage for contact images.

Files live in a single managed directory and are referenced by their public
path (``/uploads/<name>``), which is also what contact records store.
"""

import logging
import os
import pathlib
import time

import anyio.to_thread

from core.config import UploadsConfig
from core.errors import StorageError

logger = logging.getLogger(__name__)


class AssetStore:
    def __init__(
        self,
        directory: str | os.PathLike,
        url_prefix: str = "/uploads",
        name_prefix: str = "contact",
    ) -> None:
        self.directory = pathlib.Path(directory)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.name_prefix = name_prefix

    @classmethod
    def from_config(cls, config: UploadsConfig) -> "AssetStore":
        return cls(
            config.directory,
            url_prefix=config.url_prefix,
            name_prefix=config.name_prefix,
        )

    def ensure_directory(self) -> None:
        """Create the managed directory if needed.

        A permission failure propagates; the service cannot run without it.
        """
        self.directory.mkdir(parents=True, exist_ok=True)

    def public_path(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def owns(self, asset_path: str) -> bool:
        return asset_path.startswith(self.url_prefix + "/")

    def resolve(self, asset_path: str) -> pathlib.Path:
        """Map a public path to its file inside the managed directory.

        Only the final path component is used, so a stored reference can
        never point outside the directory.
        """
        return self.directory / pathlib.PurePosixPath(asset_path).name

    def exists(self, asset_path: str) -> bool:
        return self.owns(asset_path) and self.resolve(asset_path).is_file()

    async def store(self, data: bytes, extension: str) -> str:
        """Write a new asset and return its public path.

        Raises:
            StorageError: If the file cannot be written, including the
                (practically impossible) case of a name collision.
        """
        filename = f"{self.name_prefix}-{time.time_ns()}{extension}"
        target = self.directory / filename
        try:
            await anyio.to_thread.run_sync(_write_new_file, target, data)
        except FileExistsError:
            logger.error("Asset name collision: %s", target)
            raise StorageError(detail="Failed to store image")
        except OSError:
            logger.exception("Failed to write asset %s", target)
            raise StorageError(detail="Failed to store image")

        logger.info("Stored asset %s (%d bytes)", target, len(data))
        return self.public_path(filename)

    async def delete(self, asset_path: str | None) -> bool:
        """Best-effort removal of an asset.

        Returns True if a file was removed. A missing file is not an error,
        and any other failure is logged and swallowed: the contact record
        stays authoritative and must not fail because of cleanup.
        """
        if not asset_path:
            return False
        if not self.owns(asset_path):
            logger.warning("Not deleting %s: outside %s", asset_path, self.url_prefix)
            return False

        target = self.resolve(asset_path)
        try:
            removed = await anyio.to_thread.run_sync(_unlink_if_present, target)
        except OSError as exc:
            logger.warning("Failed to delete asset %s: %s", target, exc)
            return False

        if removed:
            logger.info("Deleted asset %s", target)
        return removed


def _write_new_file(target: pathlib.Path, data: bytes) -> None:
    # "x" refuses to overwrite an existing file
    with open(target, "xb") as f:
        try:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        except OSError:
            f.close()
            target.unlink(missing_ok=True)
            raise


def _unlink_if_present(target: pathlib.Path) -> bool:
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    return True
