"""
S3-compatible object storage (AWS S3 and Cloudflare R2) through the MinIO client
"""
import io
import logging
from urllib.parse import urlparse

from minio import Minio
from minio.error import S3Error

from services.storage.base import (
    CACHE_CONTROL, StorageConfigError, StorageError, StorageProvider, UploadResult,
    generate_file_name, prepare_upload,
)

logger = logging.getLogger(__name__)


class S3StorageProvider(StorageProvider):
    storage_type = 's3'

    def __init__(self, config):
        if not (config.access_key_id and config.secret_access_key and config.bucket):
            raise StorageConfigError('S3 configuration is incomplete')

        self.bucket = config.bucket
        self.public_url = config.public_url.rstrip('/') if config.public_url else None
        self.client = self._build_client(config)

    def _build_client(self, config):
        return Minio(
            's3.amazonaws.com',
            access_key=config.access_key_id,
            secret_key=config.secret_access_key,
            region=config.region or 'us-east-1',
            secure=True,
        )

    def _extra_headers(self, options):
        return {'x-amz-acl': 'public-read' if options.is_public else 'private'}

    def upload(self, file, options):
        data, mime_type, extension = prepare_upload(file, options)
        file_name = generate_file_name(file.filename, extension)
        file_key = f'{options.category}/{file_name}'
        # Resolve the URL first so a missing public URL fails before anything is written
        file_url = self.get_url(file_key)

        metadata = {'Cache-Control': CACHE_CONTROL}
        metadata.update(self._extra_headers(options))

        try:
            self.client.put_object(
                self.bucket,
                file_key,
                io.BytesIO(data),
                length=len(data),
                content_type=mime_type,
                metadata=metadata,
            )
        except S3Error as e:
            logger.error("[Storage] %s upload of %s failed: %s", self.storage_type, file_key, e)
            raise StorageError(f'Upload failed: {e}') from e

        logger.info("[Storage] Uploaded %s to %s bucket %s", file_key, self.storage_type, self.bucket)
        return UploadResult(
            id=file_key,
            file_name=file_name,
            file_url=file_url,
            file_size=len(data),
            mime_type=mime_type,
            storage_type=self.storage_type,
        )

    def delete(self, file_key):
        try:
            self.client.remove_object(self.bucket, file_key)
        except S3Error as e:
            logger.error("[Storage] %s delete of %s failed: %s", self.storage_type, file_key, e)
            raise StorageError(f'Delete failed: {e}') from e

    def get_url(self, file_key):
        if self.public_url:
            return f'{self.public_url}/{file_key}'
        return f'https://{self.bucket}.s3.amazonaws.com/{file_key}'


class R2StorageProvider(S3StorageProvider):
    storage_type = 'r2'

    def __init__(self, config):
        if not (config.access_key_id and config.secret_access_key
                and config.endpoint and config.bucket):
            raise StorageConfigError('R2 configuration is incomplete')
        super().__init__(config)

    def _build_client(self, config):
        endpoint = urlparse(config.endpoint if '://' in config.endpoint else f'https://{config.endpoint}')
        return Minio(
            endpoint.netloc,
            access_key=config.access_key_id,
            secret_key=config.secret_access_key,
            region='auto',
            secure=endpoint.scheme != 'http',
        )

    def _extra_headers(self, options):
        # R2 has no object ACLs
        return {}

    def get_url(self, file_key):
        if not self.public_url:
            # R2 has no default public URL
            raise StorageConfigError('R2_PUBLIC_URL must be configured for public access')
        return f'{self.public_url}/{file_key}'
