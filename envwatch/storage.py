import logging
import uuid

from firebase_admin import storage

logger = logging.getLogger(__name__)


class FirebaseImageStorage:
    """Uploads report photos to the default Firebase Storage bucket and
    returns their public URL.

    With no firebase app (missing credentials) every upload returns the
    placeholder URL instead of calling out.
    """

    def __init__(self, firebase_app=None, folder: str = "smart-env-reports",
                 placeholder_url: str = "https://placehold.co/600x400"):
        self.firebase_app = firebase_app
        self.folder = folder.strip("/")
        self.placeholder_url = placeholder_url

    @property
    def configured(self) -> bool:
        return self.firebase_app is not None

    def upload(self, data: bytes, content_type: str = "image/jpeg", extension: str = "jpg") -> str:
        if not self.configured:
            logger.info("Storage not configured, using placeholder image URL")
            return self.placeholder_url

        bucket = storage.bucket(app=self.firebase_app)
        blob = bucket.blob(f"{self.folder}/{uuid.uuid4().hex}.{extension}")
        blob.upload_from_string(data, content_type=content_type)
        blob.make_public()
        logger.info("Image uploaded to %s (%d bytes)", blob.name, len(data))
        return blob.public_url
