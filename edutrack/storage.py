import logging
import os
import re
import shutil
import time
from typing import BinaryIO, NamedTuple, Optional, Tuple

from sqlalchemy.orm import Session

from . import crud
from .errors import StorageError
from .pipeline import PipelineAborted, PipelineReport, StepPipeline

logger = logging.getLogger(__name__)

MATERIALS_BUCKET = "materials"
AVATARS_BUCKET = "avatars"
BUCKETS = (MATERIALS_BUCKET, AVATARS_BUCKET)


class StorageResult(NamedTuple):
    data: Optional[str]
    error: Optional[str]


class BucketStorage:
    """Files kept under ``root/<bucket>/<path>`` and served at ``url_prefix``."""

    def __init__(self, root: str, url_prefix: str = "/uploads"):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip("/")
        for bucket in BUCKETS:
            os.makedirs(os.path.join(self.root, bucket), exist_ok=True)

    def _resolve(self, bucket: str, path: str) -> str:
        if bucket not in BUCKETS:
            raise StorageError(f"Unknown bucket '{bucket}'")
        bucket_root = os.path.join(self.root, bucket)
        full_path = os.path.normpath(os.path.join(bucket_root, path))
        if not full_path.startswith(bucket_root + os.sep):
            raise StorageError(f"Invalid path '{path}'")
        return full_path

    def upload(self, bucket: str, path: str, fileobj: BinaryIO, upsert: bool = True) -> StorageResult:
        try:
            full_path = self._resolve(bucket, path)
            if os.path.exists(full_path) and not upsert:
                raise StorageError(f"'{path}' already exists in '{bucket}'")
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "wb") as buffer:
                shutil.copyfileobj(fileobj, buffer)
        except (OSError, StorageError) as exc:
            logger.error("Error uploading file to %s/%s: %s", bucket, path, exc)
            return StorageResult(None, str(exc))
        return StorageResult(path, None)

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.url_prefix}/{bucket}/{path}"

    def locate(self, url: str) -> Optional[Tuple[str, str]]:
        """Map a public URL back to (bucket, path), or None for foreign URLs."""
        prefix = self.url_prefix + "/"
        if not url or not url.startswith(prefix):
            return None
        bucket, _, path = url[len(prefix):].partition("/")
        if bucket not in BUCKETS or not path:
            return None
        return bucket, path

    def delete(self, bucket: str, path: str) -> StorageResult:
        try:
            os.remove(self._resolve(bucket, path))
        except (OSError, StorageError) as exc:
            logger.error("Error deleting file %s/%s: %s", bucket, path, exc)
            return StorageResult(None, str(exc))
        return StorageResult(path, None)


def safe_filename(filename: str) -> str:
    name = os.path.basename(filename or "file")
    return re.sub(r"\s+", "_", name) or "file"


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"


def _timestamp() -> int:
    return int(time.time() * 1000)


def upload_material(db: Session, storage: BucketStorage, teacher_id: int, title: str,
                    filename: str, fileobj: BinaryIO, content_type: Optional[str] = None,
                    description: Optional[str] = None) -> PipelineReport:
    """Store the file, then create the material row pointing at its public URL."""
    path = f"{teacher_id}/{_timestamp()}_{safe_filename(filename)}"
    file_type = content_type or f"application/{_extension(filename)}"

    pipeline = StepPipeline("upload_material")
    try:
        stored = pipeline.run("upload file", storage.upload, MATERIALS_BUCKET, path, fileobj)
        file_url = storage.public_url(MATERIALS_BUCKET, stored)
        pipeline.report.result = pipeline.run(
            "insert material", crud.create_material, db,
            title=title, description=description, file_url=file_url,
            file_type=file_type, teacher_id=teacher_id,
        )
    except PipelineAborted:
        pass
    return pipeline.report


def upload_avatar(db: Session, storage: BucketStorage, profile_id: int,
                  filename: str, fileobj: BinaryIO) -> PipelineReport:
    """Store the avatar image, then point the profile at its public URL."""
    path = f"{profile_id}/{_timestamp()}.{_extension(filename)}"

    pipeline = StepPipeline("upload_avatar")
    try:
        stored = pipeline.run("upload file", storage.upload, AVATARS_BUCKET, path, fileobj)
        avatar_url = storage.public_url(AVATARS_BUCKET, stored)
        pipeline.report.result = pipeline.run(
            "update profile", crud.update_profile, db, profile_id, avatar_url=avatar_url,
        )
    except PipelineAborted:
        pass
    return pipeline.report


def remove_material_file(storage: BucketStorage, file_url: Optional[str]) -> None:
    located = storage.locate(file_url)
    if located is None:
        return
    _, error = storage.delete(*located)
    if error:
        logger.warning("Material file %s was not removed: %s", file_url, error)
