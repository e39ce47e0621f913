#!/usr/bin/env python
"""
Tests for the storage providers and the upload endpoint
"""
import io
import os
from unittest.mock import patch

import pytest
from PIL import Image

from app import create_app
from config import TestingConfig
from services.storage import (
    FileTooLargeError, FileTypeNotAllowedError, IncomingFile, InvalidImageError,
    LocalStorageProvider, R2StorageProvider, ResizeOptions, S3StorageProvider, StorageConfig,
    StorageConfigError, UploadOptions, get_storage_provider, reset_storage_provider, upload_file,
)
from services.storage.base import generate_file_name, process_image


def png_bytes(width=40, height=20, color='red'):
    output = io.BytesIO()
    Image.new('RGB', (width, height), color).save(output, format='PNG')
    return output.getvalue()


@pytest.fixture
def local_provider(tmp_path):
    config = StorageConfig(provider='local', upload_dir=str(tmp_path), public_path='/uploads')
    return LocalStorageProvider(config)


class TestFileNames:

    def test_sanitised_name_with_timestamp_and_suffix(self):
        name = generate_file_name('My Report (final).PDF')
        stem, ext = os.path.splitext(name)
        assert ext == '.pdf'
        assert stem.startswith('my-report--final--')
        assert len(stem.split('-')[-1]) == 13

    def test_extension_override(self):
        assert generate_file_name('photo.png', '.jpg').endswith('.jpg')


class TestImageProcessing:

    @pytest.mark.parametrize('fit, expected', [
        ('cover', (10, 10)),
        ('contain', (10, 10)),
        ('fill', (10, 10)),
        ('inside', (10, 5)),
        ('outside', (20, 10)),
    ])
    def test_fit_modes(self, fit, expected):
        data = process_image(png_bytes(40, 20), ResizeOptions(10, 10, fit))
        with Image.open(io.BytesIO(data)) as image:
            assert image.format == 'JPEG'
            assert image.size == expected

    def test_unknown_fit(self):
        with pytest.raises(ValueError):
            ResizeOptions(10, 10, 'stretch')

    def test_undecodable_image(self):
        with pytest.raises(InvalidImageError):
            process_image(b'not an image', ResizeOptions(10, 10))


class TestLocalStorage:

    def test_upload_writes_file_under_category(self, local_provider, tmp_path):
        incoming = IncomingFile('notes.txt', 'text/plain', b'hello')
        result = local_provider.upload(incoming, UploadOptions(user_id='u1', category='document'))

        assert result.id.startswith('document/')
        assert result.file_url == f'/uploads/{result.id}'
        assert result.file_size == 5
        assert result.storage_type == 'local'
        assert (tmp_path / result.id).read_bytes() == b'hello'

    def test_resized_upload_becomes_jpeg(self, local_provider, tmp_path):
        incoming = IncomingFile('avatar.png', 'image/png', png_bytes())
        options = UploadOptions(user_id='u1', category='profile', resize=ResizeOptions(16, 16))
        result = local_provider.upload(incoming, options)

        assert result.mime_type == 'image/jpeg'
        assert result.id.endswith('.jpg')
        assert (tmp_path / result.id).exists()

    def test_delete_round_trip(self, local_provider, tmp_path):
        result = local_provider.upload(IncomingFile('a.txt', 'text/plain', b'x'),
                                       UploadOptions(user_id='u1'))
        local_provider.delete(result.id)
        assert not (tmp_path / result.id).exists()
        # deleting again is a no-op
        local_provider.delete(result.id)

    def test_keys_cannot_escape_upload_dir(self, local_provider):
        with pytest.raises(ValueError):
            local_provider.delete('../../etc/passwd')


class TestUploadValidation:

    def test_size_limit(self, app):
        with app.app_context():
            incoming = IncomingFile('big.bin', 'application/octet-stream', b'x' * 11)
            with pytest.raises(FileTooLargeError):
                upload_file(incoming, UploadOptions(user_id='u1', max_size=10))

    def test_type_allow_list(self, app):
        with app.app_context():
            incoming = IncomingFile('script.sh', 'text/x-shellscript', b'echo')
            options = UploadOptions(user_id='u1', allowed_types=['image/png'])
            with pytest.raises(FileTypeNotAllowedError):
                upload_file(incoming, options)

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            UploadOptions(user_id='u1', category='secrets')


class TestProviderSelection:

    def test_local_is_default(self, tmp_path):
        reset_storage_provider()
        provider = get_storage_provider({'UPLOAD_DIR': str(tmp_path)})
        assert isinstance(provider, LocalStorageProvider)
        # memoised
        assert get_storage_provider() is provider
        reset_storage_provider()

    def test_unknown_provider_fails(self):
        reset_storage_provider()
        with pytest.raises(StorageConfigError):
            get_storage_provider({'STORAGE_PROVIDER': 'ftp'})

    def test_incomplete_s3_config_fails(self):
        reset_storage_provider()
        with pytest.raises(StorageConfigError):
            get_storage_provider({'STORAGE_PROVIDER': 's3', 'AWS_S3_BUCKET': 'files'})

    def test_app_startup_fails_fast(self):
        reset_storage_provider()
        with pytest.raises(StorageConfigError):
            create_app(config_overrides={'STORAGE_PROVIDER': 'r2'}, config_class=TestingConfig)
        reset_storage_provider()


class TestS3Storage:

    S3_SETTINGS = {
        'STORAGE_PROVIDER': 's3',
        'AWS_ACCESS_KEY_ID': 'key',
        'AWS_SECRET_ACCESS_KEY': 'secret',
        'AWS_S3_BUCKET': 'cubis-files',
        'AWS_REGION': 'eu-west-1',
    }

    @patch('services.storage.s3.Minio')
    def test_upload_puts_object_with_acl(self, minio_cls):
        provider = S3StorageProvider(StorageConfig.from_mapping(self.S3_SETTINGS))
        result = provider.upload(IncomingFile('doc.pdf', 'application/pdf', b'%PDF'),
                                 UploadOptions(user_id='u1', category='document'))

        client = minio_cls.return_value
        args, kwargs = client.put_object.call_args
        assert args[0] == 'cubis-files'
        assert args[1] == result.id
        assert kwargs['content_type'] == 'application/pdf'
        assert kwargs['metadata']['x-amz-acl'] == 'public-read'
        assert result.file_url == f'https://cubis-files.s3.amazonaws.com/{result.id}'

    @patch('services.storage.s3.Minio')
    def test_public_url_prefix(self, minio_cls):
        settings = dict(self.S3_SETTINGS, AWS_S3_PUBLIC_URL='https://cdn.example.com/')
        provider = S3StorageProvider(StorageConfig.from_mapping(settings))
        assert provider.get_url('general/a.txt') == 'https://cdn.example.com/general/a.txt'

    @patch('services.storage.s3.Minio')
    def test_delete(self, minio_cls):
        provider = S3StorageProvider(StorageConfig.from_mapping(self.S3_SETTINGS))
        provider.delete('general/a.txt')
        minio_cls.return_value.remove_object.assert_called_once_with('cubis-files', 'general/a.txt')


class TestR2Storage:

    R2_SETTINGS = {
        'STORAGE_PROVIDER': 'r2',
        'R2_ACCESS_KEY_ID': 'key',
        'R2_SECRET_ACCESS_KEY': 'secret',
        'R2_ENDPOINT': 'https://abc123.r2.cloudflarestorage.com',
        'R2_BUCKET': 'cubis',
    }

    @patch('services.storage.s3.Minio')
    def test_client_uses_endpoint_host(self, minio_cls):
        R2StorageProvider(StorageConfig.from_mapping(self.R2_SETTINGS))
        args, kwargs = minio_cls.call_args
        assert args[0] == 'abc123.r2.cloudflarestorage.com'
        assert kwargs['region'] == 'auto'

    @patch('services.storage.s3.Minio')
    def test_url_requires_public_url(self, minio_cls):
        provider = R2StorageProvider(StorageConfig.from_mapping(self.R2_SETTINGS))
        with pytest.raises(StorageConfigError):
            provider.get_url('general/a.txt')

    @patch('services.storage.s3.Minio')
    def test_upload_without_public_url_writes_nothing(self, minio_cls):
        provider = R2StorageProvider(StorageConfig.from_mapping(self.R2_SETTINGS))
        with pytest.raises(StorageConfigError):
            provider.upload(IncomingFile('doc.pdf', 'application/pdf', b'%PDF'),
                            UploadOptions(user_id='u1', category='document'))
        minio_cls.return_value.put_object.assert_not_called()

    @patch('services.storage.s3.Minio')
    def test_no_acl_header(self, minio_cls):
        settings = dict(self.R2_SETTINGS, R2_PUBLIC_URL='https://files.example.com')
        provider = R2StorageProvider(StorageConfig.from_mapping(settings))
        result = provider.upload(IncomingFile('a.txt', 'text/plain', b'x'),
                                 UploadOptions(user_id='u1'))

        kwargs = minio_cls.return_value.put_object.call_args.kwargs
        assert 'x-amz-acl' not in kwargs['metadata']
        assert result.file_url.startswith('https://files.example.com/general/')


class TestUploadEndpoint:

    def test_upload_and_delete(self, app, client, make_user, login, tmp_path):
        headers = login(make_user('student'))
        response = client.post('/api/upload', headers=headers, data={
            'file': (io.BytesIO(b'lecture notes'), 'notes.txt', 'text/plain'),
            'category': 'course_material',
        }, content_type='multipart/form-data')

        assert response.status_code == 201
        upload = response.get_json()['upload']
        assert upload['file_path'].startswith('course_material/')
        assert (tmp_path / 'uploads' / upload['file_path']).exists()

        response = client.delete(f"/api/upload/{upload['id']}", headers=headers)
        assert response.status_code == 200
        assert not (tmp_path / 'uploads' / upload['file_path']).exists()

    def test_profile_category_requires_image(self, client, make_user, login):
        headers = login(make_user('student'))
        response = client.post('/api/upload', headers=headers, data={
            'file': (io.BytesIO(b'not an image'), 'notes.txt', 'text/plain'),
            'category': 'profile',
        }, content_type='multipart/form-data')

        assert response.status_code == 400
        assert response.get_json()['code'] == 'FILE_TYPE_NOT_ALLOWED'

    def test_others_cannot_delete(self, client, make_user, login):
        owner = login(make_user('student'))
        other = login(make_user('student'))
        response = client.post('/api/upload', headers=owner, data={
            'file': (io.BytesIO(b'x'), 'a.txt', 'text/plain'),
        }, content_type='multipart/form-data')
        upload_id = response.get_json()['upload']['id']

        assert client.delete(f'/api/upload/{upload_id}', headers=other).status_code == 403

    def test_requires_auth(self, client):
        assert client.post('/api/upload').status_code == 401

    def test_resize_of_broken_image_is_rejected(self, client, make_user, login):
        headers = login(make_user('student'))
        response = client.post('/api/upload', headers=headers, data={
            'file': (io.BytesIO(b'not an image'), 'a.png', 'image/png'),
            'category': 'profile',
            'width': '10',
            'height': '10',
        }, content_type='multipart/form-data')

        assert response.status_code == 400
        assert response.get_json()['code'] == 'INVALID_IMAGE'
