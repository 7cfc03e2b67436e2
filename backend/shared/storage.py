"""Storage abstraction for session snapshot persistence.

Snapshots are gzip-compressed JSON documents, one file per room code.
Files are written with owner-only permissions (0o600) inside an
owner-only directory (0o700) as a filesystem hygiene measure.
"""

import contextlib
import gzip
import os
import tempfile
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()

# Owner-only directory permissions for session storage.
_SESSION_DIR_MODE = 0o700

# Owner-only file permissions for session data files.
_SESSION_FILE_MODE = 0o600

_SESSION_SUFFIX = ".json.gz"


class SessionStorage(Protocol):
    """Protocol for persisting session snapshots."""

    def save_session(self, code: str, content: str) -> None: ...

    def load_sessions(self) -> list[str]: ...

    def delete_session(self, code: str) -> None: ...


class LocalSessionStorage:
    """Writes gzip-compressed session snapshots to the local filesystem."""

    def __init__(self, data_dir: str) -> None:
        self._data_dir = Path(data_dir).resolve()

    def _target(self, code: str) -> Path:
        target = (self._data_dir / f"{code}{_SESSION_SUFFIX}").resolve()
        if not target.is_relative_to(self._data_dir):
            raise ValueError(f"Path traversal rejected: '{code}' resolves outside session directory")
        return target

    def save_session(self, code: str, content: str) -> None:
        """Save gzip-compressed snapshot content under the configured directory.

        Creates the directory lazily on first write with owner-only permissions
        (0o700). Writes files atomically via temp-file-then-rename with
        owner-only permissions (0o600). Rejects path traversal attempts that
        would place the file outside the storage root.
        """
        target = self._target(code)

        self._data_dir.mkdir(mode=_SESSION_DIR_MODE, parents=True, exist_ok=True)
        self._data_dir.chmod(_SESSION_DIR_MODE)

        compressed = gzip.compress(content.encode("utf-8"))

        fd, tmp_path = tempfile.mkstemp(dir=str(self._data_dir), suffix=".tmp", prefix=".session_")
        fd_owned = True
        try:
            with os.fdopen(fd, "wb") as f:
                fd_owned = False  # os.fdopen took ownership; it will close fd
                f.write(compressed)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _SESSION_FILE_MODE)  # noqa: PTH101
            Path(tmp_path).replace(target)
        except BaseException:
            if fd_owned:
                with contextlib.suppress(OSError):
                    os.close(fd)
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise
        logger.debug("saved session", code=code, path=str(target))

    def load_sessions(self) -> list[str]:
        """Return the decompressed content of every stored snapshot.

        Unreadable files are logged and skipped.
        """
        if not self._data_dir.is_dir():
            return []
        contents: list[str] = []
        for path in sorted(self._data_dir.glob(f"*{_SESSION_SUFFIX}")):
            try:
                contents.append(gzip.decompress(path.read_bytes()).decode("utf-8"))
            except (OSError, EOFError, UnicodeDecodeError):
                logger.exception("failed to read session file", path=str(path))
        return contents

    def delete_session(self, code: str) -> None:
        target = self._target(code)
        with contextlib.suppress(FileNotFoundError):
            target.unlink()
