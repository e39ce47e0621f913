"""
Course and user search

SearchService ranks with PostgreSQL full-text search (tsvector/tsquery).
SimpleSearchService is the ILIKE fallback used on other databases or when
SEARCH_FULL_TEXT is off. Query errors are logged and return empty results.
"""
import logging
import re

from flask import current_app
from sqlalchemy import case, func, literal, or_, select
from sqlalchemy.exc import SQLAlchemyError

from app import db
from models.course import Course, CourseCategory
from models.student import Student
from models.teacher import Teacher
from models.user import User

logger = logging.getLogger(__name__)

TSQUERY_SPECIAL = re.compile(r"[&|!():*<>'\\]")
MIN_SUGGESTION_LENGTH = 2

EMPTY_RESULT = {'results': [], 'total': 0}


def build_tsquery(query):
    """
    Turn free text into a prefix-matching tsquery: 'web dev' -> 'web:* & dev:*'
    """
    words = []
    for word in (query or '').split():
        word = TSQUERY_SPECIAL.sub('', word)
        if word:
            words.append(f'{word}:*')
    return ' & '.join(words)


def _like_pattern(query):
    escaped = query.strip().replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


def _course_columns(relevance):
    return (
        Course.id, Course.title, Course.description, CourseCategory.name,
        CourseCategory.slug, Course.level, Course.price, Course.duration,
        Course.teacher_id, User.name, Teacher.photo, relevance,
    )


def _course_query(relevance, conditions):
    return (
        db.session.query(*_course_columns(relevance))
        .select_from(Course)
        .outerjoin(Teacher, Course.teacher_id == Teacher.user_id)
        .outerjoin(User, Teacher.user_id == User.id)
        .outerjoin(CourseCategory, Course.category_id == CourseCategory.id)
        .filter(*conditions)
    )


def _course_filters(category=None, level=None):
    conditions = [Course.is_active.is_(True)]
    if category:
        conditions.append(
            Course.category_id.in_(
                select(CourseCategory.id).where(CourseCategory.slug == category)
            )
        )
    if level:
        conditions.append(Course.level == level)
    return conditions


def _course_row_to_dict(row):
    (course_id, title, description, category, category_slug, level, price,
     duration, teacher_id, teacher_name, teacher_photo, relevance) = row
    return {
        'id': course_id,
        'title': title,
        'description': description,
        'category': category,
        'category_slug': category_slug,
        'level': level,
        'price': float(price) if price is not None else None,
        'duration': duration,
        'teacher_id': teacher_id,
        'teacher_name': teacher_name,
        'teacher_photo': teacher_photo,
        'relevance': float(relevance or 0),
    }


def _user_row_to_dict(row):
    user_id, name, email, role, photo, relevance = row
    return {
        'id': user_id,
        'name': name,
        'email': email,
        'role': role,
        'photo': photo,
        'relevance': float(relevance or 0),
    }


def _user_photo():
    return case(
        (User.role == 'student', Student.photo),
        (User.role == 'teacher', Teacher.photo),
        else_=User.photo,
    )


def _user_query(relevance, conditions):
    return (
        db.session.query(User.id, User.name, User.email, User.role, _user_photo(), relevance)
        .select_from(User)
        .outerjoin(Student, Student.user_id == User.id)
        .outerjoin(Teacher, Teacher.user_id == User.id)
        .filter(*conditions)
    )


class SearchService:
    """PostgreSQL full-text search"""

    @staticmethod
    def _course_vector():
        return func.to_tsvector('english', Course.title).op('||')(
            func.to_tsvector('english', func.coalesce(Course.description, ''))
        )

    @staticmethod
    def _user_vector():
        return func.to_tsvector('english', User.name).op('||')(
            func.to_tsvector('english', User.email)
        )

    @staticmethod
    def course_search(search_query, category=None, level=None):
        """Ranked row query and count query for a tsquery string"""
        vector = SearchService._course_vector()
        tsquery = func.to_tsquery('english', search_query)
        relevance = func.ts_rank(vector, tsquery).label('relevance')

        conditions = _course_filters(category, level) + [vector.op('@@')(tsquery)]

        ranked = _course_query(relevance, conditions).order_by(relevance.desc())
        count = db.session.query(func.count(Course.id)).filter(*conditions)
        return ranked, count

    @staticmethod
    def user_search(search_query, role=None):
        vector = SearchService._user_vector()
        tsquery = func.to_tsquery('english', search_query)
        relevance = func.ts_rank(vector, tsquery).label('relevance')

        conditions = [vector.op('@@')(tsquery)]
        if role:
            conditions.append(User.role == role)

        ranked = _user_query(relevance, conditions).order_by(relevance.desc())
        count = db.session.query(func.count(User.id)).filter(*conditions)
        return ranked, count

    @staticmethod
    def search_courses(query, category=None, level=None, limit=20, offset=0):
        search_query = build_tsquery(query)
        if not search_query:
            return dict(EMPTY_RESULT)

        try:
            ranked, count = SearchService.course_search(search_query, category, level)
            rows = ranked.limit(limit).offset(offset).all()
            total = count.scalar()

            return {'results': [_course_row_to_dict(r) for r in rows], 'total': int(total or 0)}
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("[Search] Course search error: %s", e)
            return dict(EMPTY_RESULT)

    @staticmethod
    def search_users(query, role=None, limit=20, offset=0):
        search_query = build_tsquery(query)
        if not search_query:
            return dict(EMPTY_RESULT)

        try:
            ranked, count = SearchService.user_search(search_query, role)
            rows = ranked.limit(limit).offset(offset).all()
            total = count.scalar()

            return {'results': [_user_row_to_dict(r) for r in rows], 'total': int(total or 0)}
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("[Search] User search error: %s", e)
            return dict(EMPTY_RESULT)


class SimpleSearchService:
    """ILIKE fallback with a constant relevance of 1"""

    @staticmethod
    def search_courses(query, category=None, level=None, limit=20, offset=0):
        if not query or not query.strip():
            return dict(EMPTY_RESULT)

        try:
            pattern = _like_pattern(query)
            conditions = _course_filters(category, level) + [
                or_(
                    Course.title.ilike(pattern, escape='\\'),
                    Course.description.ilike(pattern, escape='\\'),
                )
            ]

            rows = (
                _course_query(literal(1).label('relevance'), conditions)
                .order_by(Course.created_at.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )
            total = db.session.query(func.count(Course.id)).filter(*conditions).scalar()

            return {'results': [_course_row_to_dict(r) for r in rows], 'total': int(total or 0)}
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("[Search] Simple course search error: %s", e)
            return dict(EMPTY_RESULT)

    @staticmethod
    def search_users(query, role=None, limit=20, offset=0):
        if not query or not query.strip():
            return dict(EMPTY_RESULT)

        try:
            pattern = _like_pattern(query)
            conditions = [or_(User.name.ilike(pattern, escape='\\'),
                              User.email.ilike(pattern, escape='\\'))]
            if role:
                conditions.append(User.role == role)

            rows = (
                _user_query(literal(1).label('relevance'), conditions)
                .order_by(User.created_at.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )
            total = db.session.query(func.count(User.id)).filter(*conditions).scalar()

            return {'results': [_user_row_to_dict(r) for r in rows], 'total': int(total or 0)}
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("[Search] Simple user search error: %s", e)
            return dict(EMPTY_RESULT)


def full_text_available():
    """Full-text search needs PostgreSQL and SEARCH_FULL_TEXT enabled"""
    if not current_app.config.get('SEARCH_FULL_TEXT', True):
        return False
    return db.engine.dialect.name == 'postgresql'


def get_search_service():
    return SearchService if full_text_available() else SimpleSearchService


def get_suggestions(query, limit=5):
    """Course titles, teacher names and category names matching a partial query"""
    if not query or len(query.strip()) < MIN_SUGGESTION_LENGTH:
        return []

    pattern = _like_pattern(query)
    sources = (
        ('course', Course.title, [Course.is_active.is_(True)]),
        ('teacher', User.name, [User.role == 'teacher']),
        ('category', CourseCategory.name, []),
    )

    suggestions = []
    try:
        for kind, column, conditions in sources:
            count = func.count().label('count')
            rows = (
                db.session.query(column, count)
                .filter(column.ilike(pattern, escape='\\'), *conditions)
                .group_by(column)
                .order_by(count.desc())
                .limit(limit)
                .all()
            )
            suggestions.extend({'text': text, 'type': kind, 'count': int(n)} for text, n in rows)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("[Search] Suggestions error: %s", e)
        return []

    suggestions.sort(key=lambda s: s['count'], reverse=True)
    return suggestions[:limit]


def get_popular_searches(limit=10):
    """Newest active course titles stand in for popular searches"""
    try:
        rows = (
            db.session.query(Course.title)
            .filter(Course.is_active.is_(True))
            .order_by(Course.created_at.desc())
            .limit(limit)
            .all()
        )
        return [title for (title,) in rows]
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("[Search] Popular searches error: %s", e)
        return []


def highlight_text(text, query):
    """Wrap each query term found in text with <mark>"""
    if not text or not query:
        return text

    terms = sorted(set(query.split()), key=len, reverse=True)
    if not terms:
        return text

    # One pass, longest terms first, so a term never matches inside an inserted tag
    pattern = re.compile('|'.join(re.escape(t) for t in terms), re.IGNORECASE)
    return pattern.sub(lambda m: f'<mark>{m.group(0)}</mark>', text)


def extract_snippet(text, query, max_length=150):
    """Cut a window of text around the first query term"""
    if not text:
        return ''
    if not query:
        return text[:max_length]

    lower_text = text.lower()
    positions = [lower_text.find(term.lower()) for term in query.split()]
    positions = [p for p in positions if p != -1]

    if not positions:
        return text[:max_length] + ('...' if len(text) > max_length else '')

    first = min(positions)
    start = max(0, first - 50)
    end = min(len(text), first + max_length - 50)

    snippet = text[start:end]
    if start > 0:
        snippet = '...' + snippet
    if end < len(text):
        snippet = snippet + '...'
    return snippet
