"""
Shared fixtures: an app on in-memory SQLite, a test client and factories.

Client requests are made outside any app context so each request gets its
own flask.g; factories open a short context and return plain ids.
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from decimal import Decimal

import pytest

from app import create_app, db
from config import TestingConfig
from models.course import Course, CourseCategory
from models.enrollment import Enrollment
from services.accounts import create_account
from services.storage import reset_storage_provider

DEFAULT_PASSWORD = 'Password123!'


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create test app"""
    app = create_app(
        config_overrides={'UPLOAD_DIR': str(tmp_path / 'uploads')},
        config_class=TestingConfig,
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    reset_storage_provider()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create an account and return {'id', 'email', 'password', 'role'}"""
    counter = {'n': 0}

    def _make_user(role='student', email=None, password=DEFAULT_PASSWORD, verified=True,
                   name=None, **profile):
        counter['n'] += 1
        email = email or f"{role}{counter['n']}@example.com"
        with app.app_context():
            user, password = create_account(
                role, name or f"{role.title()} {counter['n']}", email,
                password=password, verified=verified, **profile
            )
            return {'id': user.id, 'email': user.email, 'password': password, 'role': role}

    return _make_user


@pytest.fixture
def make_course(app):
    def _make_course(title='Python Fundamentals', price=100, teacher_id=None, is_active=True,
                     category_slug=None, **fields):
        with app.app_context():
            category_id = None
            if category_slug:
                category = CourseCategory.query.filter_by(slug=category_slug).first()
                if not category:
                    category = CourseCategory(name=category_slug.title(), slug=category_slug)
                    db.session.add(category)
                    db.session.flush()
                category_id = category.id

            course = Course(title=title, price=price, teacher_id=teacher_id,
                            is_active=is_active, category_id=category_id, **fields)
            db.session.add(course)
            db.session.commit()
            return course.id

    return _make_course


@pytest.fixture
def make_enrollment(app):
    def _make_enrollment(student_id, course_id, status='active', paid_amount=0):
        with app.app_context():
            course = db.session.get(Course, course_id)
            enrollment = Enrollment(
                student_id=student_id,
                course_id=course_id,
                status=status,
                total_amount=Decimal(str(course.price or 0)),
                paid_amount=Decimal(str(paid_amount)),
            )
            db.session.add(enrollment)
            db.session.commit()
            return enrollment.id

    return _make_enrollment


@pytest.fixture
def login(client):
    """Log in through the API and return Authorization headers"""
    def _login(user):
        response = client.post('/api/auth/login', json={
            'email': user['email'],
            'password': user['password'],
        })
        assert response.status_code == 200, response.get_json()
        return {'Authorization': f"Bearer {response.get_json()['token']}"}

    return _login


@pytest.fixture
def admin_headers(make_user, login):
    return login(make_user('admin'))
