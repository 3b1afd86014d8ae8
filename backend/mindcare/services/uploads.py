import os
import uuid

from fastapi import UploadFile

from mindcare.config import settings

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class UploadRejected(ValueError):
    pass


async def save_profile_image(upload: UploadFile, owner_id: int) -> str:
    """Store the image under STATIC_DIR/profiles and return its /static URL path."""
    ext = ALLOWED_IMAGE_TYPES.get(upload.content_type or "")
    if ext is None:
        raise UploadRejected("Profile image must be a JPEG, PNG or WebP file")

    data = await upload.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise UploadRejected("Profile image is too large")
    if not data:
        raise UploadRejected("Profile image is empty")

    folder = os.path.join(settings.STATIC_DIR, "profiles")
    os.makedirs(folder, exist_ok=True)
    name = f"{owner_id}_{uuid.uuid4().hex}{ext}"
    with open(os.path.join(folder, name), "wb") as f:
        f.write(data)
    return f"/static/profiles/{name}"
