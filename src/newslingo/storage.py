"""Session persistence on Supabase (object storage + sessions table)."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, BinaryIO, Callable, Mapping, Optional, Sequence

import requests

from .exceptions import StorageError
from .media import guess_content_type, sanitize_filename
from .models import MediaKind, Session, SubtitleSegment

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "NBC News"

UploadProgress = Callable[[float], None]
StatusCallback = Callable[[str], None]


class _ProgressReader:
    """File wrapper reporting upload progress (percent) as it is read."""

    def __init__(self, fileobj: BinaryIO, total: int, on_progress: UploadProgress):
        self._fileobj = fileobj
        self._total = total
        self._read = 0
        self._on_progress = on_progress

    def __len__(self) -> int:
        return self._total

    def read(self, size: int = -1) -> bytes:
        chunk = self._fileobj.read(size)
        if chunk and self._total:
            self._read += len(chunk)
            self._on_progress(min(100.0, self._read * 100.0 / self._total))
        return chunk


class SupabaseStorage:
    """Minimal client for the Supabase storage and PostgREST endpoints."""

    def __init__(
        self,
        url: str,
        key: str,
        *,
        bucket: str = "media",
        table: str = "sessions",
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
    ) -> None:
        if not url:
            raise ValueError("url must be a non-empty string")
        self._base_url = url.rstrip("/")
        self._key = key
        self.bucket = bucket
        self.table = table
        self._session = session or requests.Session()
        self._timeout = timeout

    def _headers(self, extra: Optional[Mapping[str, str]] = None) -> dict[str, str]:
        headers = {"apikey": self._key, "Authorization": f"Bearer {self._key}"}
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, path: str, *, headers: Optional[Mapping[str, str]] = None, **kwargs: Any):
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(headers),
                timeout=self._timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise StorageError(f"Network error during {method} {path}: {e}") from e

        if response.status_code >= 400:
            raise StorageError(self._error_message(response))
        return response

    @staticmethod
    def _error_message(response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
            if message:
                return str(message)
        return f"Request failed with status {response.status_code}"

    # Object storage

    def upload(
        self,
        path: str,
        data: bytes | BinaryIO,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Upload an object into the bucket and return its path."""
        self._request(
            "POST",
            f"/storage/v1/object/{self.bucket}/{path}",
            headers={
                "Content-Type": content_type,
                "cache-control": "3600",
                "x-upsert": "false",
            },
            data=data,
        )
        logger.debug("Uploaded %s to bucket %s", path, self.bucket)
        return path

    def remove(self, paths: Sequence[str]) -> None:
        """Delete objects from the bucket."""
        self._request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": list(paths)},
        )

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self.bucket}/{path}"

    # Sessions table

    def insert_record(self, row: Mapping[str, Any]) -> dict:
        """Insert a row and return it as stored (including its id)."""
        response = self._request(
            "POST",
            f"/rest/v1/{self.table}",
            headers={"Prefer": "return=representation"},
            json=[dict(row)],
        )
        rows = response.json()
        if not rows:
            raise StorageError("Insert returned no row")
        return rows[0]

    def update_record(self, record_id: str, partial: Mapping[str, Any]) -> None:
        self._request(
            "PATCH",
            f"/rest/v1/{self.table}",
            params={"id": f"eq.{record_id}"},
            json=dict(partial),
        )

    def query_all(self) -> list[dict]:
        """All rows, newest first."""
        response = self._request(
            "GET",
            f"/rest/v1/{self.table}",
            params={"select": "*", "order": "created_at.desc"},
        )
        return response.json() or []

    def get_record(self, record_id: str, columns: str = "*") -> Optional[dict]:
        response = self._request(
            "GET",
            f"/rest/v1/{self.table}",
            params={"select": columns, "id": f"eq.{record_id}"},
        )
        rows = response.json()
        return rows[0] if rows else None

    def delete_record(self, record_id: str) -> None:
        self._request(
            "DELETE",
            f"/rest/v1/{self.table}",
            params={"id": f"eq.{record_id}"},
        )


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionRepository:
    """Stores learning sessions: media and cover objects plus a metadata row."""

    def __init__(self, storage: SupabaseStorage, clock: Callable[[], int] = _now_ms) -> None:
        self.storage = storage
        self._clock = clock

    def _upload_file(
        self,
        object_path: str,
        file_path: Path,
        on_progress: Optional[UploadProgress] = None,
    ) -> str:
        content_type = guess_content_type(file_path)
        with open(file_path, "rb") as f:
            body: bytes | BinaryIO | _ProgressReader = f
            if on_progress:
                body = _ProgressReader(f, file_path.stat().st_size, on_progress)
            return self.storage.upload(object_path, body, content_type)

    def _remove_orphans(self, paths: list[str]) -> None:
        try:
            self.storage.remove(paths)
        except StorageError as e:
            logger.warning("Could not remove orphaned uploads %s: %s", paths, e)

    def save_session(
        self,
        title: str,
        media_file: str | Path,
        media_type: MediaKind,
        subtitles: Sequence[SubtitleSegment],
        *,
        category: Optional[str] = None,
        cover_file: Optional[str | Path] = None,
        on_status: Optional[StatusCallback] = None,
        on_upload_progress: Optional[UploadProgress] = None,
    ) -> str:
        """Upload media (and cover) then insert the session row.

        If the media upload or the insert fails, objects already uploaded
        are removed on a best effort basis before the error is raised.

        Returns:
            The new session id
        """
        media_file = Path(media_file)
        stamp = self._clock()
        media_path = f"{stamp}_{sanitize_filename(media_file.name)}"

        cover_path = None
        if cover_file:
            cover_file = Path(cover_file)
            candidate = f"covers/{stamp}_{sanitize_filename(cover_file.name)}"
            try:
                cover_path = self._upload_file(candidate, cover_file)
            except (StorageError, OSError) as e:
                logger.warning("Cover upload failed, continuing without cover: %s", e)

        if on_status:
            size_mb = media_file.stat().st_size / (1024 * 1024)
            on_status(f"Uploading media ({size_mb:.1f} MB)...")
        try:
            self._upload_file(media_path, media_file, on_upload_progress)
        except (StorageError, OSError) as e:
            if cover_path:
                self._remove_orphans([cover_path])
            raise StorageError(f"Upload failed: {e}") from e

        if on_status:
            on_status("Finalizing...")
        row: dict[str, Any] = {
            "title": title,
            "category": category or DEFAULT_CATEGORY,
            "media_path": media_path,
            "media_type": MediaKind(media_type).value,
            "subtitles": [seg.to_record() for seg in subtitles],
            "created_at": stamp,
        }
        if cover_path:
            row["cover_path"] = cover_path

        try:
            inserted = self.storage.insert_record(row)
        except StorageError as e:
            self._remove_orphans([media_path] + ([cover_path] if cover_path else []))
            raise StorageError(f"Database save failed: {e}") from e

        session_id = str(inserted["id"])
        logger.info("Saved session %s (%s)", session_id, title)
        return session_id

    def update_session(
        self,
        session_id: str,
        title: str,
        *,
        category: Optional[str] = None,
        subtitles: Optional[Sequence[SubtitleSegment]] = None,
        cover_file: Optional[str | Path] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> None:
        updates: dict[str, Any] = {"title": title}

        if cover_file:
            cover_file = Path(cover_file)
            if on_status:
                on_status("Uploading new cover...")
            object_path = f"covers/{self._clock()}_{sanitize_filename(cover_file.name)}"
            try:
                updates["cover_path"] = self._upload_file(object_path, cover_file)
            except (StorageError, OSError) as e:
                raise StorageError(f"Cover upload failed: {e}") from e

        if category:
            updates["category"] = category
        if subtitles is not None:
            updates["subtitles"] = [seg.to_record() for seg in subtitles]

        if on_status:
            on_status("Updating database...")
        try:
            self.storage.update_record(session_id, updates)
        except StorageError as e:
            raise StorageError(f"Update failed: {e}") from e

    def _to_session(self, row: Mapping[str, Any], with_media_url: bool = False) -> Session:
        cover_path = row.get("cover_path")
        return Session(
            id=row["id"],
            title=row["title"],
            category=row.get("category") or DEFAULT_CATEGORY,
            media_type=row["media_type"],
            created_at=row["created_at"],
            subtitles=row.get("subtitles") or [],
            cover_url=self.storage.public_url(cover_path) if cover_path else None,
            media_url=self.storage.public_url(row["media_path"]) if with_media_url else None,
        )

    def list_sessions(self) -> list[Session]:
        """All sessions, newest first."""
        try:
            rows = self.storage.query_all()
        except StorageError as e:
            raise StorageError(f"Failed to load sessions: {e}") from e
        return [self._to_session(row) for row in rows]

    def get_session(self, session_id: str) -> Optional[Session]:
        """One session with its media URL, or None if it does not exist."""
        row = self.storage.get_record(session_id)
        if row is None:
            return None
        return self._to_session(row, with_media_url=True)

    def delete_session(self, session_id: str) -> None:
        """Delete the stored objects (best effort) and always the row."""
        try:
            row = self.storage.get_record(session_id, columns="media_path,cover_path")
            if row:
                paths = [row["media_path"]]
                if row.get("cover_path"):
                    paths.append(row["cover_path"])
                self.storage.remove(paths)
        except StorageError as e:
            logger.warning("Could not clean up storage for session %s: %s", session_id, e)

        try:
            self.storage.delete_record(session_id)
        except StorageError as e:
            raise StorageError(f"Failed to delete session: {e}") from e
