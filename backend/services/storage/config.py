"""
Storage configuration, read from the Flask config or the environment
"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from services.storage.base import STORAGE_PROVIDERS, StorageConfigError

logger = logging.getLogger(__name__)


@dataclass
class StorageConfig:
    provider: str = 'local'

    # S3 / R2
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: Optional[str] = None
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    public_url: Optional[str] = None

    # Local
    upload_dir: str = 'public/uploads'
    public_path: str = '/uploads'

    @classmethod
    def from_mapping(cls, mapping):
        """Build from any mapping holding the STORAGE_PROVIDER / AWS_* / R2_* / UPLOAD_* keys"""
        provider = (mapping.get('STORAGE_PROVIDER') or 'local').strip().lower()
        config = cls(provider=provider)

        if provider == 's3':
            config.access_key_id = mapping.get('AWS_ACCESS_KEY_ID')
            config.secret_access_key = mapping.get('AWS_SECRET_ACCESS_KEY')
            config.region = mapping.get('AWS_REGION') or 'us-east-1'
            config.bucket = mapping.get('AWS_S3_BUCKET')
            config.public_url = mapping.get('AWS_S3_PUBLIC_URL')  # optional CDN
        elif provider == 'r2':
            config.access_key_id = mapping.get('R2_ACCESS_KEY_ID')
            config.secret_access_key = mapping.get('R2_SECRET_ACCESS_KEY')
            config.endpoint = mapping.get('R2_ENDPOINT')  # https://<account>.r2.cloudflarestorage.com
            config.bucket = mapping.get('R2_BUCKET')
            config.public_url = mapping.get('R2_PUBLIC_URL')
        else:
            config.upload_dir = mapping.get('UPLOAD_DIR') or 'public/uploads'
            config.public_path = mapping.get('UPLOAD_PUBLIC_PATH') or '/uploads'

        return config

    @classmethod
    def from_env(cls):
        return cls.from_mapping(os.environ)

    def validate(self):
        if self.provider not in STORAGE_PROVIDERS:
            raise StorageConfigError(f'Unknown storage provider: {self.provider}')

        if self.provider == 's3':
            if not (self.access_key_id and self.secret_access_key and self.bucket):
                raise StorageConfigError(
                    'S3 storage requires AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY and AWS_S3_BUCKET'
                )
        elif self.provider == 'r2':
            if not (self.access_key_id and self.secret_access_key and self.endpoint and self.bucket):
                raise StorageConfigError(
                    'R2 storage requires R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, R2_ENDPOINT and R2_BUCKET'
                )
            if not self.public_url:
                logger.warning("[Storage] R2_PUBLIC_URL is not set; uploads to R2 will be refused")
        return self
