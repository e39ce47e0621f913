"""
Storage factory
Builds the configured provider once and exposes upload/delete helpers
"""
import logging

from services.storage.base import (
    DEFAULT_MAX_SIZE, FileTooLargeError, FileTypeNotAllowedError, IncomingFile,
    InvalidImageError, ResizeOptions, StorageConfigError, StorageError, StorageProvider,
    UploadOptions, UploadResult,
)
from services.storage.config import StorageConfig
from services.storage.local import LocalStorageProvider
from services.storage.s3 import R2StorageProvider, S3StorageProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES = {
    'local': LocalStorageProvider,
    's3': S3StorageProvider,
    'r2': R2StorageProvider,
}

_storage_provider = None


def get_storage_provider(config_mapping=None):
    """
    Return the process-wide provider, building it on first call.

    config_mapping is any mapping of storage settings (the Flask config at
    startup); without one the environment is read. Raises
    StorageConfigError when the settings are incomplete.
    """
    global _storage_provider
    if _storage_provider is not None:
        return _storage_provider

    if config_mapping is None:
        config = StorageConfig.from_env()
    else:
        config = StorageConfig.from_mapping(config_mapping)
    config.validate()

    _storage_provider = PROVIDER_CLASSES[config.provider](config)
    logger.info("[Storage] Using %s storage provider", config.provider)
    return _storage_provider


def reset_storage_provider():
    global _storage_provider
    _storage_provider = None


def upload_file(file, options):
    """Validate size and type, then hand the file to the provider"""
    provider = get_storage_provider()

    max_size = options.max_size or DEFAULT_MAX_SIZE
    if file.size > max_size:
        raise FileTooLargeError(
            f'File size exceeds maximum allowed size of {max_size / 1024 / 1024:g}MB'
        )

    if options.allowed_types and file.mime_type not in options.allowed_types:
        raise FileTypeNotAllowedError(f'File type {file.mime_type} is not allowed')

    return provider.upload(file, options)


def delete_file(file_key):
    return get_storage_provider().delete(file_key)


def get_file_url(file_key):
    return get_storage_provider().get_url(file_key)


__all__ = [
    'DEFAULT_MAX_SIZE', 'FileTooLargeError', 'FileTypeNotAllowedError', 'IncomingFile',
    'InvalidImageError', 'LocalStorageProvider', 'R2StorageProvider', 'ResizeOptions',
    'S3StorageProvider',
    'StorageConfig', 'StorageConfigError', 'StorageError', 'StorageProvider',
    'UploadOptions', 'UploadResult', 'delete_file', 'get_file_url',
    'get_storage_provider', 'reset_storage_provider', 'upload_file',
]
