# routes/uploads.py
import logging

from flask import Blueprint, g, jsonify, request

from app import db
from errors import APIError, NotFoundError, PermissionDeniedError, ValidationError
from models.upload import Upload
from services.storage import (
    FileTooLargeError, FileTypeNotAllowedError, IncomingFile, InvalidImageError, ResizeOptions,
    StorageError, UploadOptions, delete_file, upload_file,
)
from utils.auth import require_auth
from utils.helpers import parse_bool

logger = logging.getLogger(__name__)

uploads_bp = Blueprint('uploads', __name__)

IMAGE_TYPES = ['image/jpeg', 'image/png', 'image/webp', 'image/gif']
DOCUMENT_TYPES = IMAGE_TYPES + [
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/plain',
]

# category: allowed MIME types (None allows anything)
CATEGORY_TYPES = {
    'profile': IMAGE_TYPES,
    'course_cover': IMAGE_TYPES,
    'document': DOCUMENT_TYPES,
    'course_material': None,
    'general': None,
}


def resize_options(form):
    """ResizeOptions from width/height/fit form fields, or None"""
    if not form.get('width') and not form.get('height'):
        return None
    try:
        width = int(form.get('width') or form.get('height'))
        height = int(form.get('height') or form.get('width'))
    except ValueError:
        raise ValidationError('width and height must be whole numbers')
    if width <= 0 or height <= 0:
        raise ValidationError('width and height must be positive')
    return ResizeOptions(width=width, height=height, fit=form.get('fit', 'cover'))


@uploads_bp.route('', methods=['POST'])
@require_auth
def upload():
    """
    Upload a file (multipart field "file").
    Form fields: category, is_public, and width/height/fit to resize images.
    """
    file_storage = request.files.get('file')
    if not file_storage or not file_storage.filename:
        raise ValidationError('No file provided')

    category = request.form.get('category', 'general')
    if category not in CATEGORY_TYPES:
        raise ValidationError(f"category must be one of: {', '.join(CATEGORY_TYPES)}")

    incoming = IncomingFile.from_file_storage(file_storage)
    resize = resize_options(request.form)
    if resize and not incoming.is_image:
        raise ValidationError('Only images can be resized')

    options = UploadOptions(
        user_id=g.current_user.id,
        category=category,
        is_public=parse_bool(request.form.get('is_public'), default=True),
        allowed_types=CATEGORY_TYPES[category],
        resize=resize,
    )

    try:
        result = upload_file(incoming, options)
    except FileTooLargeError as e:
        raise APIError(str(e), status_code=413, code='FILE_TOO_LARGE')
    except FileTypeNotAllowedError as e:
        raise ValidationError(str(e), code='FILE_TYPE_NOT_ALLOWED')
    except InvalidImageError as e:
        raise ValidationError(str(e), code='INVALID_IMAGE')
    except StorageError as e:
        logger.error("[Storage] Upload failed for user %s: %s", g.current_user.id, e)
        raise APIError('File upload failed', status_code=502, code='STORAGE_ERROR')

    record = Upload(
        user_id=g.current_user.id,
        file_name=result.file_name,
        original_name=incoming.filename,
        mime_type=result.mime_type,
        file_size=result.file_size,
        file_path=result.id,
        file_url=result.file_url,
        storage_type=result.storage_type,
        category=category,
        is_public=options.is_public,
    )
    db.session.add(record)
    db.session.commit()

    return jsonify({
        'message': 'File uploaded successfully',
        'upload': record.to_dict(),
        'url': result.file_url,
    }), 201


@uploads_bp.route('/<upload_id>', methods=['DELETE'])
@require_auth
def delete_upload(upload_id):
    """
    Remove a file from storage and its record; owners and admins only
    """
    record = db.session.get(Upload, upload_id)
    if not record:
        raise NotFoundError('Upload', upload_id)

    user = g.current_user
    if record.user_id != user.id and user.role != 'admin':
        raise PermissionDeniedError('You can only delete your own files')

    try:
        delete_file(record.file_path)
    except StorageError as e:
        logger.error("[Storage] Delete failed for %s: %s", record.file_path, e)
        raise APIError('File delete failed', status_code=502, code='STORAGE_ERROR')

    db.session.delete(record)
    db.session.commit()

    return jsonify({'message': 'File deleted successfully'})
