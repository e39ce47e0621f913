"""
Storage provider types shared by the local, S3 and R2 backends
"""
import io
import logging
import os
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from typing import List, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

STORAGE_PROVIDERS = ('local', 's3', 'r2')
UPLOAD_CATEGORIES = ('profile', 'document', 'course_material', 'course_cover', 'general')
RESIZE_FITS = ('cover', 'contain', 'fill', 'inside', 'outside')

DEFAULT_MAX_SIZE = 10 * 1024 * 1024  # 10MB
JPEG_QUALITY = 85
CACHE_CONTROL = 'max-age=31536000'  # 1 year


class StorageError(Exception):
    """Base class for storage failures"""


class StorageConfigError(StorageError):
    """Storage provider is missing settings or unknown"""


class FileTooLargeError(StorageError):
    pass


class FileTypeNotAllowedError(StorageError):
    pass


class InvalidImageError(StorageError):
    """Bytes sent as an image could not be decoded"""


@dataclass
class ResizeOptions:
    width: int
    height: int
    fit: str = 'cover'

    def __post_init__(self):
        if self.fit not in RESIZE_FITS:
            raise ValueError(f"fit must be one of: {', '.join(RESIZE_FITS)}")


@dataclass
class UploadOptions:
    user_id: str
    category: str = 'general'
    is_public: bool = True
    max_size: int = DEFAULT_MAX_SIZE
    allowed_types: Optional[List[str]] = None
    resize: Optional[ResizeOptions] = None

    def __post_init__(self):
        if self.category not in UPLOAD_CATEGORIES:
            raise ValueError(f"category must be one of: {', '.join(UPLOAD_CATEGORIES)}")


@dataclass
class UploadResult:
    id: str
    file_name: str
    file_url: str
    file_size: int
    mime_type: str
    storage_type: str

    def to_dict(self):
        return {
            'id': self.id,
            'file_name': self.file_name,
            'file_url': self.file_url,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
            'storage_type': self.storage_type,
        }


@dataclass
class IncomingFile:
    """An uploaded file held in memory"""
    filename: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self):
        return len(self.data)

    @property
    def is_image(self):
        return (self.mime_type or '').startswith('image/')

    @classmethod
    def from_file_storage(cls, file_storage):
        """Build from a werkzeug FileStorage (request.files[...])"""
        return cls(
            filename=file_storage.filename or 'upload',
            mime_type=file_storage.mimetype or 'application/octet-stream',
            data=file_storage.read(),
        )


def _random_suffix(length=13):
    alphabet = string.ascii_lowercase + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def generate_file_name(original_name, extension=None):
    """<sanitized-name>-<timestamp ms>-<random><ext>"""
    stem, ext = os.path.splitext(os.path.basename(original_name))
    if extension is not None:
        ext = extension
    sanitized = re.sub(r'[^a-zA-Z0-9]', '-', stem).lower() or 'file'
    return f'{sanitized}-{int(time.time() * 1000)}-{_random_suffix()}{ext.lower()}'


def process_image(data, resize):
    """Resize image bytes and re-encode them as JPEG"""
    try:
        return _resize(data, resize)
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f'Could not read image: {e}') from e


def _resize(data, resize):
    with Image.open(io.BytesIO(data)) as image:
        image = ImageOps.exif_transpose(image)
        if image.mode not in ('RGB', 'L'):
            image = image.convert('RGB')

        size = (resize.width, resize.height)
        if resize.fit == 'cover':
            image = ImageOps.fit(image, size, centering=(0.5, 0.5))
        elif resize.fit == 'contain':
            image = ImageOps.pad(image, size, color=(255, 255, 255), centering=(0.5, 0.5))
        elif resize.fit == 'fill':
            image = image.resize(size)
        elif resize.fit == 'inside':
            image = ImageOps.contain(image, size)
        else:  # outside
            ratio = max(resize.width / image.width, resize.height / image.height)
            image = image.resize((round(image.width * ratio), round(image.height * ratio)))

        output = io.BytesIO()
        image.save(output, format='JPEG', quality=JPEG_QUALITY)
        return output.getvalue()


def prepare_upload(file, options):
    """
    Apply the resize step, returning (data, mime_type, extension).

    Resized images are always JPEG; everything else is stored as received.
    """
    if options.resize and file.is_image:
        logger.debug("[Storage] Resizing %s to %sx%s (%s)", file.filename,
                     options.resize.width, options.resize.height, options.resize.fit)
        return process_image(file.data, options.resize), 'image/jpeg', '.jpg'
    return file.data, file.mime_type, None


class StorageProvider:
    """Interface every storage backend implements"""
    storage_type = None

    def upload(self, file, options):
        raise NotImplementedError

    def delete(self, file_key):
        raise NotImplementedError

    def get_url(self, file_key):
        raise NotImplementedError
