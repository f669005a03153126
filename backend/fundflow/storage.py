"""Blob storage dos anexos.

`upload()` grava em chunks e reporta progresso fracionário (0..1) via callback,
devolvendo a URL pública do arquivo.
"""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import BinaryIO, Callable, Optional, Protocol

from fundflow.core.settings import settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

_UNSAFE = re.compile(r"[^a-zA-Z0-9.-]")


def sanitize_filename(name: str) -> str:
    return _UNSAFE.sub("_", name or "")


def attachment_path(category_id: int | str, filename: str, timestamp_ms: int) -> str:
    return f"transactions/{category_id}/{timestamp_ms}-{sanitize_filename(filename)}"


class StorageError(Exception):
    pass


class BlobStorage(Protocol):
    def upload(
        self,
        stream: BinaryIO,
        path: str,
        on_progress: Optional[ProgressCallback] = None,
        size: Optional[int] = None,
    ) -> str: ...

    def open(self, path: str) -> Path: ...


class LocalBlobStorage:
    def __init__(self, root: str | os.PathLike, public_base_url: str, chunk_bytes: int = 64 * 1024):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")
        self.chunk_bytes = max(1, int(chunk_bytes))

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if target == self.root or self.root not in target.parents:
            raise StorageError(f"caminho fora do storage: {path!r}")
        return target

    def url_for(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"

    def upload(
        self,
        stream: BinaryIO,
        path: str,
        on_progress: Optional[ProgressCallback] = None,
        size: Optional[int] = None,
    ) -> str:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".part")

        written = 0
        last = 0.0
        try:
            with open(tmp, "wb") as out:
                while True:
                    chunk = stream.read(self.chunk_bytes)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
                    if on_progress and size:
                        last = min(written / size, 1.0)
                        on_progress(last)
            os.replace(tmp, target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StorageError(f"falha ao gravar {path}: {e}") from e

        if on_progress and last < 1.0:
            on_progress(1.0)
        logger.info("upload ok path=%s bytes=%s", path, written)
        return self.url_for(path)

    def open(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        return target


_storage: LocalBlobStorage | None = None


def get_storage() -> BlobStorage:
    global _storage
    if _storage is None:
        _storage = LocalBlobStorage(
            settings.STORAGE_DIR,
            settings.STORAGE_PUBLIC_BASE_URL,
            chunk_bytes=settings.STORAGE_CHUNK_BYTES,
        )
    return _storage
