"""Upload dos anexos de uma transferência (antes de gravar as pernas)."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO, Callable, Dict, Iterable

from fundflow.core import messages as msg
from fundflow.core.errors import UploadError
from fundflow.notifications import Notifier
from fundflow.storage import BlobStorage, StorageError, attachment_path

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024


@dataclass
class IncomingFile:
    name: str
    content_type: str
    size: int
    stream: BinaryIO


def _now_ms() -> int:
    return int(time.time() * 1000)


def screen_files(
    files: Iterable[IncomingFile],
    notifier: Notifier,
    user_id: str | None,
    max_bytes: int = MAX_FILE_SIZE,
) -> tuple[list[IncomingFile], list[str]]:
    """Separa os arquivos acima do limite (aviso por arquivo) dos aceitos."""
    accepted: list[IncomingFile] = []
    rejected: list[str] = []
    for f in files:
        if f.size > max_bytes:
            notifier.error(user_id, msg.FILE_TOO_LARGE.format(name=f.name))
            rejected.append(f.name)
            continue
        accepted.append(f)
    return accepted, rejected


def upload_attachments(
    storage: BlobStorage,
    category_id: int,
    files: Iterable[IncomingFile],
    notifier: Notifier,
    user_id: str | None,
    clock: Callable[[], int] = _now_ms,
) -> list[Dict[str, Any]]:
    """Envia em sequência; a primeira falha interrompe tudo (uploads anteriores ficam)."""
    uploaded: list[Dict[str, Any]] = []
    for f in files:
        notifier.progress(user_id, f.name, 0.0)
        path = attachment_path(category_id, f.name, clock())
        try:
            url = storage.upload(
                f.stream,
                path,
                on_progress=lambda fraction, name=f.name: notifier.progress(user_id, name, fraction),
                size=f.size,
            )
        except (StorageError, OSError) as e:
            logger.exception("Error uploading file %s", f.name)
            notifier.error(user_id, msg.FILE_UPLOAD_FAILED.format(name=f.name))
            raise UploadError(msg.FILE_UPLOAD_FAILED.format(name=f.name)) from e

        uploaded.append(
            {
                "name": f.name,
                "url": url,
                "type": f.content_type,
                "size": f.size,
                "uploaded_at": datetime.now(timezone.utc).isoformat(),
                "path": path,
            }
        )
        notifier.success(user_id, msg.FILE_UPLOADED.format(name=f.name))
    return uploaded
