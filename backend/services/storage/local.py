"""
Local filesystem storage (<UPLOAD_DIR>/<category>/<file>)
Not suitable for multi-instance or serverless deployments
"""
import logging
import os

from services.storage.base import (
    StorageProvider, UploadResult, generate_file_name, prepare_upload,
)

logger = logging.getLogger(__name__)


class LocalStorageProvider(StorageProvider):
    storage_type = 'local'

    def __init__(self, config):
        self.upload_dir = os.path.abspath(config.upload_dir or 'public/uploads')
        self.public_path = (config.public_path or '/uploads').rstrip('/')

    def _path_for(self, file_key):
        path = os.path.abspath(os.path.join(self.upload_dir, file_key))
        # Keys must stay inside the upload directory
        if os.path.commonpath([path, self.upload_dir]) != self.upload_dir:
            raise ValueError(f'Invalid file key: {file_key}')
        return path

    def upload(self, file, options):
        data, mime_type, extension = prepare_upload(file, options)

        file_name = generate_file_name(file.filename, extension)
        file_key = f'{options.category}/{file_name}'
        path = self._path_for(file_key)
        os.makedirs(os.path.dirname(path), exist_ok=True)

        with open(path, 'wb') as fh:
            fh.write(data)

        logger.info("[Storage] Saved %s (%d bytes) locally", file_key, len(data))
        return UploadResult(
            id=file_key,
            file_name=file_name,
            file_url=self.get_url(file_key),
            file_size=len(data),
            mime_type=mime_type,
            storage_type=self.storage_type,
        )

    def delete(self, file_key):
        path = self._path_for(file_key)
        if os.path.exists(path):
            os.remove(path)
            logger.info("[Storage] Deleted %s", file_key)

    def get_url(self, file_key):
        return f'{self.public_path}/{file_key}'
