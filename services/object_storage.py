"""
Creative and logo uploads kept in a Google Cloud Storage bucket.

Objects are namespaced per company: companies/{companyId}/{type}/{subPath}/{uuid}.{ext}
"""
import os
import uuid
from flask import current_app
from google.cloud import storage
from google.api_core import exceptions as gcs_exceptions
from utils.errors import AppError, BadRequestError, ForbiddenError, NotFoundError

OBJECT_TYPES = ('creatives', 'logos', 'documents')
CONTENT_TYPES = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
}
DEFAULT_CONTENT_TYPE = 'image/jpeg'

class StorageNotConfiguredError(AppError):
    status_code = 500

def company_prefix(company_id):
    return f"companies/{company_id}/"

def file_extension(filename):
    ext = os.path.splitext(filename or '')[1].lstrip('.').lower()
    return ext or 'jpg'

def content_type_for(filename):
    return CONTENT_TYPES.get(file_extension(filename), DEFAULT_CONTENT_TYPE)

def generate_object_path(company_id, object_type, filename, sub_path=None):
    """
    Builds a fresh object name for an upload.

    Raises:
        BadRequestError: Unknown object type, a file extension without a known image
            content type, or a sub path that tries to leave the prefix.
    """
    if object_type not in OBJECT_TYPES:
        raise BadRequestError(f"Invalid object type. Use one of: {', '.join(OBJECT_TYPES)}")
    extension = file_extension(filename)
    if extension not in CONTENT_TYPES:
        raise BadRequestError(f"Unsupported file type. Use one of: {', '.join(CONTENT_TYPES)}")
    parts = [f"companies/{company_id}", object_type]
    if sub_path:
        cleaned = str(sub_path).strip('/')
        if '..' in cleaned.split('/'):
            raise BadRequestError("Invalid sub path")
        if cleaned:
            parts.append(cleaned)
    parts.append(f"{uuid.uuid4()}.{extension}")
    return '/'.join(parts)

def ensure_in_company(object_path, company_id):
    """Rejects paths outside the company's prefix (including '..' escapes)."""
    if not object_path or '..' in object_path.split('/') or not object_path.startswith(company_prefix(company_id)):
        raise ForbiddenError("Access denied to this object")

class ObjectStorage:
    """Thin wrapper over one GCS bucket."""

    def __init__(self, bucket_name, client=None):
        if not bucket_name:
            raise StorageNotConfiguredError("Object storage is not configured (OBJECT_STORAGE_BUCKET).")
        self.bucket_name = bucket_name
        self.client = client or storage.Client()

    @classmethod
    def from_app_config(cls):
        return cls(current_app.config.get('OBJECT_STORAGE_BUCKET'))

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    def upload(self, data, object_path, content_type=None):
        blob = self.bucket.blob(object_path)
        blob.upload_from_string(data, content_type=content_type or content_type_for(object_path))
        current_app.logger.info(f"Uploaded object {object_path} ({len(data)} bytes) to bucket {self.bucket_name}.")
        return object_path

    def download(self, object_path):
        """
        Returns:
            tuple: (bytes, content type derived from the object name)

        Raises:
            NotFoundError: No such object.
        """
        blob = self.bucket.blob(object_path)
        try:
            data = blob.download_as_bytes()
        except gcs_exceptions.NotFound:
            raise NotFoundError("Object not found")
        return data, content_type_for(object_path)

    def delete(self, object_path):
        try:
            self.bucket.blob(object_path).delete()
        except gcs_exceptions.NotFound:
            raise NotFoundError("Object not found")
        current_app.logger.info(f"Deleted object {object_path} from bucket {self.bucket_name}.")

    def public_path(self, object_path):
        """URL served by this app for the object."""
        return f"/objects/{object_path}"
