"""
Storage backend abstraction for the Reel Engine.

Provides:
- StorageBackend: Abstract base class
- LocalStorageBackend: Keeps uploads and outputs under MEDIA_DIR, served via the /media mount

Usage:
    backend = LocalStorageBackend(config)
    stored = backend.save_upload(fileobj, "clip.mp4", "video/mp4")
    path = backend.resolve(stored.file_id)
    location = backend.output(config.reels_subdir, "reel_x.mp4")
"""

import abc
import logging
import re
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional

from .config import Config, get_config
from .errors import FetchError, ValidationError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 100 * 1024 * 1024
CHUNK_SIZE = 1024 * 1024

ALLOWED_MIME_TYPES = frozenset([
    # Audio
    "audio/mpeg", "audio/mp3", "audio/wav", "audio/ogg", "audio/aac",
    "audio/m4a", "audio/flac",
    # Video
    "video/mp4", "video/avi", "video/mov", "video/wmv", "video/flv",
    "video/webm", "video/mkv", "video/quicktime",
    # Image
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp",
    "image/bmp", "image/tiff", "image/svg+xml", "image/avif",
])

FILE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+(\.[A-Za-z0-9]+)?$")


@dataclass
class StoredFile:
    """Metadata of an uploaded file."""
    file_id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    local_path: Path
    url: str
    upload_time: str


@dataclass
class SaveResult:
    """Where a generated output is written and served from."""
    filename: str
    local_path: Path
    url: str
    subdir: str


class StorageBackend(abc.ABC):
    """Abstract base class for storage backends."""

    @abc.abstractmethod
    def save_upload(
        self,
        fileobj: BinaryIO,
        filename: str,
        content_type: str,
    ) -> StoredFile:
        """
        Persist an uploaded file under a fresh id.

        Args:
            fileobj: Readable binary stream
            filename: Client-side filename (only its extension is kept)
            content_type: Declared MIME type

        Returns:
            StoredFile with id, path and URL
        """
        pass

    @abc.abstractmethod
    def resolve(self, file_id: str) -> Path:
        """Local path of a stored file."""
        pass

    @abc.abstractmethod
    def delete(self, file_id: str) -> Path:
        """Delete a stored file and return the path it had."""
        pass

    @abc.abstractmethod
    def output(self, subdir: str, filename: str) -> SaveResult:
        """Reserve the local path and public URL of a generated file."""
        pass

    @abc.abstractmethod
    def publish(self, source: Path, subdir: str, filename: str) -> SaveResult:
        """Move a finished file into the served media tree."""
        pass

    @staticmethod
    def generate_file_id() -> str:
        """Generate a unique file ID."""
        return str(uuid.uuid4())


class LocalStorageBackend(StorageBackend):
    """
    Local filesystem storage backend.

    Uploads are saved to:
        {media_dir}/storage/{file_id}{ext}

    Outputs are saved to:
        {media_dir}/{subdir}/{filename}

    URLs are constructed as:
        {public_base_url}/media/{subdir}/{filename}

    FastAPI mounts MEDIA_DIR as the /media static directory.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize local storage backend.

        Args:
            config: Configuration instance. Uses global config if not provided.
        """
        self.config = config or get_config()

    @property
    def storage_dir(self) -> Path:
        return self.config.storage_dir

    def _check_id(self, file_id: str) -> None:
        if not file_id or not FILE_ID_PATTERN.match(file_id):
            raise ValidationError(f"Invalid file id: {file_id!r}")

    def _find(self, file_id: str) -> Optional[Path]:
        exact = self.storage_dir / file_id
        if exact.is_file():
            return exact
        matches = sorted(self.storage_dir.glob(f"{file_id}.*"))
        return matches[0] if matches else None

    def save_upload(
        self,
        fileobj: BinaryIO,
        filename: str,
        content_type: str,
    ) -> StoredFile:
        """
        Stream an upload to disk, enforcing the MIME allow-list and size limit.

        Raises:
            ValidationError: Unsupported type, empty file or file over 100MB
        """
        if content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                f"Unsupported file type: {content_type}. "
                "Only audio, video, and image files are allowed."
            )

        self.storage_dir.mkdir(parents=True, exist_ok=True)

        file_id = self.generate_file_id()
        extension = Path(filename or "").suffix.lower()
        stored_name = f"{file_id}{extension}"
        local_path = self.storage_dir / stored_name

        size = 0
        try:
            with open(local_path, "wb") as out:
                while True:
                    chunk = fileobj.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > MAX_UPLOAD_BYTES:
                        raise ValidationError("File size must be less than 100MB")
                    out.write(chunk)
        except Exception:
            local_path.unlink(missing_ok=True)
            raise

        if size == 0:
            local_path.unlink(missing_ok=True)
            raise ValidationError("Please provide a non-empty file to upload")

        stored = StoredFile(
            file_id=file_id,
            filename=stored_name,
            original_name=filename or "",
            mime_type=content_type,
            size=size,
            local_path=local_path,
            url=self.config.public_url(self.config.STORAGE_SUBDIR, stored_name),
            upload_time=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(f"Stored upload {stored.file_id} ({stored.mime_type}, {stored.size} bytes)")
        return stored

    def resolve(self, file_id: str) -> Path:
        """
        Find a stored file by id (with or without its extension).

        Raises:
            ValidationError: Malformed id
            FetchError: No such file (not_found)
        """
        self._check_id(file_id)
        path = self._find(file_id)
        if path is None:
            raise FetchError(file_id, f"File not found: {file_id}", not_found=True)
        return path

    def delete(self, file_id: str) -> Path:
        path = self.resolve(file_id)
        path.unlink()
        logger.info(f"Deleted stored file {path.name}")
        return path

    def output(self, subdir: str, filename: str) -> SaveResult:
        directory = self.config.media_dir / subdir
        directory.mkdir(parents=True, exist_ok=True)
        return SaveResult(
            filename=filename,
            local_path=directory / filename,
            url=self.config.public_url(subdir, filename),
            subdir=subdir,
        )

    def publish(self, source: Path, subdir: str, filename: str) -> SaveResult:
        """Move a finished file from a job workspace into the served media tree."""
        result = self.output(subdir, filename)
        shutil.move(str(source), str(result.local_path))
        return result
