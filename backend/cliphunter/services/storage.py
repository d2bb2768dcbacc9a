"""Local filesystem storage for rendered outputs."""
import logging
import shutil
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

JOB_SUBDIRS = ("clips", "thumbnails", "subtitles")


class StorageKeyError(ValueError):
    """A storage key resolves outside the storage root."""
    pass


class LocalStorage:
    """
    Key-addressed storage rooted at a directory served under a URL prefix.

    Keys are relative paths such as ``<job_id>/clips/<clip_id>.mp4``.
    """

    def __init__(self, base_dir: str | Path, base_url: str = "/outputs"):
        self.base_dir = Path(base_dir).resolve()
        self.base_url = base_url.rstrip("/")
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_local_path(self, key: str) -> Path:
        """
        Resolve a key to a path under the storage root.

        Raises:
            StorageKeyError: If the key escapes the root
        """
        path = (self.base_dir / key.lstrip("/")).resolve()
        if path != self.base_dir and self.base_dir not in path.parents:
            raise StorageKeyError(f"Invalid storage key: {key}")
        return path

    def get_file_url(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    def key_for(self, path: str | Path) -> str:
        """Key of a file that already lives under the storage root."""
        resolved = Path(path).resolve()
        try:
            return resolved.relative_to(self.base_dir).as_posix()
        except ValueError:
            raise StorageKeyError(f"Path is outside storage: {path}")

    def ensure_job_dir(self, job_id: str) -> Path:
        """Create the job directory and its standard subdirectories."""
        job_dir = self.get_local_path(job_id)
        for subdir in JOB_SUBDIRS:
            (job_dir / subdir).mkdir(parents=True, exist_ok=True)
        return job_dir

    def save_file(self, key: str, source_path: str | Path) -> str:
        """Copy a file into storage and return its URL."""
        destination = self.get_local_path(key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source_path, destination)
        return self.get_file_url(key)

    def file_exists(self, key: str) -> bool:
        try:
            return self.get_local_path(key).is_file()
        except StorageKeyError:
            return False

    def delete_file(self, key: str):
        """Delete a file; missing files are ignored."""
        self.get_local_path(key).unlink(missing_ok=True)

    def delete_files(self, keys: Iterable[str]):
        for key in keys:
            self.delete_file(key)

    def delete_job_files(self, job_id: str):
        """Remove everything stored for a job."""
        job_dir = self.get_local_path(job_id)
        if job_dir == self.base_dir:
            raise StorageKeyError(f"Invalid job id: {job_id!r}")

        try:
            shutil.rmtree(job_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to delete job files for {job_id}: {e}")
