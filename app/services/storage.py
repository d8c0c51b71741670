from __future__ import annotations

import re
import secrets
from pathlib import Path
from urllib.parse import urlparse

from app.core.config import settings

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")
ALLOWED_IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def safe_filename(name: str) -> str:
    base = Path(name or "").name
    cleaned = _UNSAFE.sub("_", base).strip("._") or "image"
    return cleaned[-120:]


class LocalImageStore:
    """Listing images on local disk, keyed ``<property_id>/<random>_<name>``."""

    def __init__(self, base_dir: str):
        self.base = Path(base_dir)
        self.base.mkdir(parents=True, exist_ok=True)

    def image_key(self, *, property_id: str, filename: str) -> str:
        return f"{property_id}/{secrets.token_hex(6)}_{safe_filename(filename)}"

    def put_bytes(self, *, key: str, data: bytes) -> str:
        path = self.base / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"file://{path.resolve().as_posix()}"

    def delete(self, uri: str) -> None:
        self.resolve_path(uri).unlink(missing_ok=True)

    def resolve_path(self, uri: str) -> Path:
        """
        Resolve a storage URI to a local filesystem path.

        Supports:
          - file:///absolute/path
          - absolute filesystem paths
          - relative keys (resolved under self.base)
        """
        parsed = urlparse(uri)

        if parsed.scheme == "file":
            return Path(parsed.path)

        if parsed.scheme == "":
            p = Path(uri)
            if p.is_absolute():
                return p
            return self.base / p

        raise ValueError(f"Unsupported storage scheme: {parsed.scheme}")


def get_image_store() -> LocalImageStore:
    return LocalImageStore(settings.image_storage_dir)
