import hashlib
import os
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Final

from fastapi import UploadFile

from docsearch.core.config import settings

FILENAME_SAFE_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")

# extension -> accepted leading bytes; plain text has no signature
MAGIC_BYTES: Final[dict[str, tuple[bytes, ...]]] = {
    ".pdf": (b"%PDF",),
    ".docx": (b"PK\x03\x04",),
    ".doc": (b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1",),
}


@dataclass(frozen=True)
class SavedFile:
    document_id: str
    original_filename: str
    stored_filename: str
    content_type: str
    size_bytes: int
    sha256: str
    stored_path: str
    created_at: str


def sanitize_filename(filename: str) -> str:
    filename = os.path.basename((filename or "").strip())
    filename = FILENAME_SAFE_RE.sub("_", filename)
    return filename or "file"


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def get_upload_root() -> Path:
    return Path(settings.DATA_DIR) / "uploads"


def sniff_magic(extension: str, first_bytes: bytes) -> bool:
    """
    Basic 'magic bytes' verification so a renamed binary is not
    accepted just because of its extension.
    """
    signatures = MAGIC_BYTES.get(extension.lower())
    if signatures is None:
        # .txt / .md: reject obvious binaries only
        return b"\x00" not in first_bytes

    return any(first_bytes.startswith(sig) for sig in signatures)


async def read_first_bytes(upload_file: UploadFile, n: int = 16) -> bytes:
    """
    Read first n bytes and reset pointer.
    """
    await upload_file.seek(0)
    b = await upload_file.read(n)
    await upload_file.seek(0)
    return b


async def save_upload_file_streaming(
    *,
    upload_file: UploadFile,
    document_id: str,
    max_bytes: int,
) -> SavedFile:
    """
    Streams UploadFile to disk in chunks, calculates sha256, enforces max_bytes.
    Writes to a temp name first, then renames to the final file.
    """
    dest_dir = get_upload_root() / document_id
    ensure_dir(dest_dir)

    original_filename = upload_file.filename or "file"
    final_path = dest_dir / sanitize_filename(original_filename)
    tmp_path = final_path.with_name(final_path.name + f".tmp_{uuid.uuid4().hex}")

    hasher = hashlib.sha256()
    total = 0
    chunk_size = 1024 * 1024  # 1MB

    await upload_file.seek(0)

    try:
        with tmp_path.open("wb") as f:
            while True:
                chunk = await upload_file.read(chunk_size)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_bytes:
                    raise ValueError("FILE_TOO_LARGE")
                hasher.update(chunk)
                f.write(chunk)

        tmp_path.replace(final_path)

    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise
    finally:
        await upload_file.close()

    return SavedFile(
        document_id=document_id,
        original_filename=original_filename,
        stored_filename=final_path.name,
        content_type=upload_file.content_type or "application/octet-stream",
        size_bytes=total,
        sha256=hasher.hexdigest(),
        stored_path=str(final_path),
        created_at=datetime.now(timezone.utc).isoformat(),
    )
