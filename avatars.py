import logging
import os
import time

from errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
MAX_AVATAR_BYTES = 2 * 1024 * 1024  # 2MB
AVATAR_URL_PREFIX = "/uploads/avatars/"


class AvatarStorage:
    """Stores avatar images under ``<public_dir>/uploads/avatars``."""

    def __init__(self, public_dir: str):
        self.public_dir = public_dir
        self.directory = os.path.join(public_dir, "uploads", "avatars")
        os.makedirs(self.directory, exist_ok=True)

    def validate(self, filename: str, content_type: str, size: int) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS or (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            raise ValidationError("Only JPG, PNG, GIF or WebP images can be uploaded")
        if size == 0:
            raise ValidationError("Please choose an image file to upload")
        if size > MAX_AVATAR_BYTES:
            raise ValidationError("Image file is too large, please upload an image under 2MB")
        return ext

    def save(self, user_id: str, filename: str, content_type: str, data: bytes) -> str:
        ext = self.validate(filename, content_type, len(data))
        os.makedirs(self.directory, exist_ok=True)
        stored_name = f"user-{user_id}-{int(time.time() * 1000)}{ext}"
        with open(os.path.join(self.directory, stored_name), "wb") as fh:
            fh.write(data)
        logger.info("Stored avatar %s for user %s", stored_name, user_id)
        return AVATAR_URL_PREFIX + stored_name

    def delete(self, avatar: str) -> None:
        # data: URIs are inline images, nothing on disk
        if not avatar or avatar.startswith("data:") or not avatar.startswith(AVATAR_URL_PREFIX):
            return
        path = os.path.join(self.directory, os.path.basename(avatar))
        try:
            if os.path.exists(path):
                os.remove(path)
                logger.info("Deleted old avatar %s", path)
        except OSError:
            logger.warning("Failed to delete old avatar %s", path, exc_info=True)
