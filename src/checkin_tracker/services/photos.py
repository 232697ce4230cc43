"""Customer photo handling."""

from dataclasses import dataclass
from typing import Protocol

from checkin_tracker.domain.errors import SessionValidationError
from checkin_tracker.domain.sessions import Session
from checkin_tracker.services.sync import SessionSyncService


class PhotoStorage(Protocol):
    """Storage for customer photos."""

    def upload(self, session_id: str, content: bytes, content_type: str) -> str:
        """Store a photo and return its public URL."""

    def delete(self, session_id: str) -> None:
        """Delete the stored photo for a session."""


@dataclass
class PhotoService:
    """Stores photos and keeps the session's photo reference in sync."""

    storage: PhotoStorage
    sync: SessionSyncService

    def upload(self, session_id: str, content: bytes, content_type: str) -> Session:
        """Upload a photo for an existing session."""
        self.sync.get(session_id)
        if not content:
            raise SessionValidationError("No file uploaded", ["photo: empty body"])
        if not content_type.startswith("image/"):
            raise SessionValidationError(
                "Photo must be an image", [f"content-type: {content_type}"]
            )
        photo_url = self.storage.upload(session_id, content, content_type)
        return self.sync.set_photo(session_id, photo_url)

    def remove(self, session_id: str) -> Session:
        """Delete a session's photo and clear its reference."""
        session = self.sync.get(session_id)
        if not session.photo:
            raise SessionValidationError("No photo found", ["photo: not set"])
        self.storage.delete(session_id)
        return self.sync.set_photo(session_id, None)
