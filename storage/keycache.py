"""
Filesystem persistence for cached CSR keys and emitted CSRs.

Directory layout:
  <cache_store_path>/<subject>/key.pem     cached EC private key (mode 0o600)
  <csr_output_path>/<subject>.csr.pem      most recent CSR for the subject

Writes go to a temp file in the target directory, are fsynced, then renamed
over the destination, so a crash never leaves a truncated key behind.
"""
from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

KEY_FILE = "key.pem"


def safe_subject(subject: str) -> str:
    """Map a subject CN to a directory name ("*.a.com" -> "wildcard.a.com")."""
    return subject.replace("*.", "wildcard.").replace("/", "").replace("\\", "")


def cache_path(cache_store_path: str, subject: str) -> Path:
    return Path(cache_store_path) / safe_subject(subject) / KEY_FILE


def read_cache_text(cache_store_path: str, subject: str) -> Optional[str]:
    """
    Return the cached key PEM for *subject*, or None if nothing is cached.

    Undecodable bytes are replaced rather than raised, so a damaged cache still
    reaches the key provider and is regenerated there.
    """
    path = cache_path(cache_store_path, subject)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Unable to read key cache %s: %s", path, exc)
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Key cache %s is not valid UTF-8", path)
        return data.decode("utf-8", errors="replace")


def write_cache_text(cache_store_path: str, subject: str, text: str) -> Path:
    path = cache_path(cache_store_path, subject)
    atomic_write_text(path, text, mode=stat.S_IRUSR | stat.S_IWUSR)
    return path


def write_csr(csr_output_path: str, subject: str, csr_pem: str) -> Path:
    path = Path(csr_output_path) / f"{safe_subject(subject)}.csr.pem"
    atomic_write_text(path, csr_pem)
    return path


def atomic_write_text(path: Path, content: str, mode: Optional[int] = None) -> None:
    """
    Write *content* to *path* via temp file + fsync + os.replace.

    When *mode* is given it is applied to the temp file before the rename, so
    the destination never exists with wider permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
