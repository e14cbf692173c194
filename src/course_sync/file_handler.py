"""File handler module: encoding-aware reads and whole-file copies.

Provides the file I/O used by discovery, the platform reader and the
sync executor.  Functions here raise ``OSError`` on I/O failure; callers
decide whether that is a warning or an error item.
"""

import hashlib
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read
# =============================================================================


def decode_bytes(raw: bytes) -> tuple[str, str]:
    """Decode raw document bytes.

    UTF-8 is tried first since documents are specified as UTF-8; anything
    else goes through charset-normalizer detection.

    Returns:
        Tuple of (content_string, encoding).
    """
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    return (str(result), result.encoding)


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a text file with automatic encoding detection.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    return decode_bytes(path.read_bytes())


def file_sha256(path: Path, chunk_size: int = 1 << 16) -> str:
    """Return the SHA-256 hex digest of a file's raw bytes."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


# =============================================================================
# File Write
# =============================================================================


def copy_file(source: Path, target: Path) -> int:
    """Copy *source* bytes to *target*, creating parent directories.

    The target is replaced atomically (temp file + ``os.replace``) so a
    reader of the platform tree never sees a half-written document.

    Returns:
        Number of bytes written.
    """
    data = source.read_bytes()
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)
