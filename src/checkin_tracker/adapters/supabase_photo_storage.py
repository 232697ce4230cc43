"""Supabase Storage bucket for customer photos."""

from dataclasses import dataclass

from supabase import Client

from checkin_tracker.services.photos import PhotoStorage


@dataclass
class SupabasePhotoStorage(PhotoStorage):
    """Stores one photo per customer in a Supabase Storage bucket."""

    client: Client
    bucket: str = "customer-photos"

    def upload(self, session_id: str, content: bytes, content_type: str) -> str:
        """Upload (or overwrite) a customer's photo and return its public URL."""
        path = _photo_path(session_id)
        storage = self.client.storage.from_(self.bucket)
        storage.upload(
            path,
            content,
            {"content-type": content_type, "upsert": "true"},
        )
        return storage.get_public_url(path)

    def delete(self, session_id: str) -> None:
        """Remove a customer's photo from the bucket."""
        self.client.storage.from_(self.bucket).remove([_photo_path(session_id)])


def _photo_path(session_id: str) -> str:
    return f"customers/{session_id}.jpg"
