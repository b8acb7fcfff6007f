"""
Path normalization for disk keys.

Every driver maps caller supplied paths to a normalized key before touching
its backend, so both drivers agree on which paths are valid and equal.
"""

import os
import posixpath
from pathlib import Path

from filedrive.core.exceptions import InvalidPathError


class PathResolver:
    """Normalizes logical paths and maps them under a disk root."""

    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        """
        Initialize the resolver.

        Args:
            root: Filesystem root of the disk. Only needed for ``resolve``.
        """
        self.root = Path(root).resolve() if root is not None else None

    def normalize(self, path: str) -> str:
        """
        Normalize a logical path into a disk key.

        Args:
            path: Path relative to the disk root.

        Returns:
            Key without leading slash, redundant separators or dot segments.

        Raises:
            InvalidPathError: If the path is empty, contains a NUL byte,
                names the root itself, or resolves above the root.
        """
        if not isinstance(path, str) or not path.strip():
            raise InvalidPathError(str(path), "path is empty")
        if "\x00" in path:
            raise InvalidPathError(path, "path contains a null byte")

        candidate = path.replace("\\", "/").lstrip("/")
        normalized = posixpath.normpath(candidate) if candidate else "."

        if normalized == ".":
            raise InvalidPathError(path, "path points at the disk root")
        if normalized == ".." or normalized.startswith("../"):
            raise InvalidPathError(path, "path escapes the disk root")

        return normalized

    def resolve(self, path: str, follow_symlinks: bool = True) -> Path:
        """
        Get the absolute filesystem path for a logical path.

        Args:
            path: Path relative to the disk root.
            follow_symlinks: Resolve a symlink in the last segment to its
                target. Writes and deletes pass False so they act on the
                link itself; only the parent directory is resolved then.

        Raises:
            InvalidPathError: If the location falls outside the root.
        """
        if self.root is None:
            raise RuntimeError("PathResolver has no root to resolve against")

        key = self.normalize(path)
        if follow_symlinks:
            full_path = (self.root / key).resolve()
            contained = full_path
        else:
            parent = (self.root / key).parent.resolve()
            full_path = parent / posixpath.basename(key)
            contained = parent

        if contained != self.root and self.root not in contained.parents:
            raise InvalidPathError(path, "path escapes the disk root")
        if full_path == self.root:
            raise InvalidPathError(path, "path points at the disk root")

        return full_path

    def relative(self, full_path: Path) -> str:
        """Get the disk key of an absolute path under the root."""
        if self.root is None:
            raise RuntimeError("PathResolver has no root to resolve against")
        return full_path.relative_to(self.root).as_posix()
