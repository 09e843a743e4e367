import uuid
from pathlib import Path
from typing import Optional, Protocol

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


class ImageStore(Protocol):
    def save(self, upload: FileStorage) -> str:
        """Persist the upload and return a public URI for it."""


class LocalImageStore:
    def __init__(self, folder: str, base_url: str):
        self.folder = Path(folder)
        self.base_url = base_url.rstrip("/")

    def save(self, upload: FileStorage) -> str:
        filename = secure_filename(upload.filename or "")
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValueError(f"Unsupported image type: {ext or 'unknown'}")

        self.folder.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}.{ext}"
        upload.save(str(self.folder / name))
        return f"{self.base_url}/{name}"


def get_image_store() -> Optional[ImageStore]:
    store = current_app.extensions.get("image_store")
    if store is not None:
        return store
    folder = current_app.config.get("UPLOAD_FOLDER")
    if not folder:
        return None
    return LocalImageStore(folder, current_app.config.get("IMAGE_BASE_URL", "/media/contestants"))
