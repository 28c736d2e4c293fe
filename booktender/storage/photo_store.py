"""
Photo Store

Content-addressed storage for imported photos. Each photo is kept once,
named by the SHA-256 of its bytes, regardless of the original file name
or location.
"""

import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from booktender.exceptions import PhotoImportError


@dataclass
class ImportedPhoto:
    """A photo brought into managed storage."""

    original_path: Optional[Path]
    stored_path: Path
    content_hash: str
    reused: bool = False


class PhotoStore:
    """
    Managed directory of photos keyed by content hash.

    Usage:
        store = PhotoStore("data/photos")
        photo = store.import_file("~/Desktop/IMG_1234.jpg")
        print(photo.stored_path, photo.content_hash)
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def hash_bytes(data: bytes) -> str:
        """SHA-256 hex digest of photo bytes."""
        return hashlib.sha256(data).hexdigest()

    def find(self, content_hash: str) -> Optional[Path]:
        """Stored file for a hash, whatever its extension."""
        for candidate in sorted(self.root.glob(f"{content_hash}*")):
            if candidate.stem == content_hash and candidate.is_file():
                return candidate
        return None

    def import_file(self, source: Union[str, Path]) -> ImportedPhoto:
        """
        Bring a file into managed storage.

        Args:
            source: Path to the original photo

        Returns:
            ImportedPhoto with stable stored path and hash

        Raises:
            PhotoImportError: Source missing or unreadable
        """
        source = Path(source).expanduser()
        try:
            data = source.read_bytes()
        except OSError as e:
            raise PhotoImportError(source, e.strerror or str(e)) from e

        imported = self._store(data, source.suffix.lower())
        imported.original_path = source
        return imported

    def import_bytes(self, data: bytes, suffix: str = ".png") -> ImportedPhoto:
        """Store raw image bytes, e.g. an image pasted from the clipboard."""
        return self._store(data, suffix.lower())

    def _store(self, data: bytes, suffix: str) -> ImportedPhoto:
        content_hash = self.hash_bytes(data)

        existing = self.find(content_hash)
        if existing is not None:
            logger.debug(f"Reusing stored photo {existing.name}")
            return ImportedPhoto(None, existing, content_hash, reused=True)

        stored_path = self.root / f"{content_hash}{suffix}"

        # Write to a temp file first so a concurrent reader never sees a partial photo
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".import-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, stored_path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise PhotoImportError(stored_path, e.strerror or str(e)) from e

        logger.info(f"Stored photo {stored_path.name}")
        return ImportedPhoto(None, stored_path, content_hash)

    def read(self, stored_path: Union[str, Path]) -> bytes:
        """Bytes of a stored photo."""
        return Path(stored_path).read_bytes()
