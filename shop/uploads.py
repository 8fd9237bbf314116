import logging
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage

from agrishop.exceptions import ApiError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif"}


class UploadError(ApiError):
    default_detail = "File upload error"


def save_uploaded_image(upload):
    """Store an uploaded image and return ``(url, filename)``."""
    if upload is None:
        raise UploadError("No file uploaded", extra={"details": "Please select an image file to upload."})
    if upload.content_type not in ALLOWED_IMAGE_TYPES:
        raise UploadError(extra={"details": "Only JPEG, PNG and GIF files are allowed!"})
    if upload.size > settings.MAX_UPLOAD_SIZE:
        raise UploadError("File too large", extra={"details": "Maximum file size is 5MB"})

    ext = os.path.splitext(upload.name)[1].lower()
    filename = f"image-{uuid.uuid4().hex}{ext}"
    stored = default_storage.save(filename, upload)
    url = default_storage.url(stored)
    logger.info("stored upload %s as %s", upload.name, stored)
    return url, os.path.basename(stored)


def discard_stored_image(url):
    """Delete a previously stored image; URLs outside local media are left alone."""
    if not url or not url.startswith(settings.MEDIA_URL):
        return
    name = url[len(settings.MEDIA_URL):]
    if default_storage.exists(name):
        default_storage.delete(name)
        logger.info("removed stored image %s", name)
