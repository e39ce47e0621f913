"""
Upload Model for CUBIS Academy
Metadata for files kept by the storage provider
"""
from app import db

from models.base import BaseModel

UPLOAD_CATEGORIES = ('profile', 'document', 'course_material', 'course_cover', 'general')


class Upload(BaseModel):
    __tablename__ = 'uploads'

    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    file_name = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(100), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    file_path = db.Column(db.String(500), nullable=False)  # storage key
    file_url = db.Column(db.String(500), nullable=False)
    storage_type = db.Column(db.String(20), nullable=False, default='local')
    category = db.Column(db.String(50), nullable=False, default='general', index=True)
    is_public = db.Column(db.Boolean, default=True, nullable=False)

    user = db.relationship('User', lazy=True)
