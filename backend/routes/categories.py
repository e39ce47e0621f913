# routes/categories.py
from flask import Blueprint, jsonify, request

from app import db
from errors import ConflictError, NotFoundError, require_fields
from models.course import Course, CourseCategory
from services.cache import CacheKeys, CacheService, CacheTTL
from utils.auth import require_role
from utils.helpers import parse_bool, slugify

categories_bp = Blueprint('categories', __name__)

CATEGORIES_CACHE_KEY = 'courses:categories'
UPDATABLE_FIELDS = ['name', 'description', 'icon', 'color', 'is_active']


def get_category_or_404(category_id):
    category = db.session.get(CourseCategory, category_id)
    if not category:
        raise NotFoundError('Category', category_id)
    return category


def category_with_count(category):
    data = category.to_dict()
    data['course_count'] = Course.query.filter_by(category_id=category.id, is_active=True).count()
    return data


def invalidate_categories():
    CacheService.delete(CATEGORIES_CACHE_KEY)
    CacheService.delete(CacheKeys.active_courses())


@categories_bp.route('/categories', methods=['GET'])
def list_categories():
    """
    Active categories for the public catalog
    """
    cached = CacheService.get(CATEGORIES_CACHE_KEY)
    if cached is not None:
        return jsonify(cached)

    categories = CourseCategory.query.filter_by(is_active=True).order_by(CourseCategory.name).all()
    payload = {'categories': [category_with_count(c) for c in categories]}
    CacheService.set(CATEGORIES_CACHE_KEY, payload, CacheTTL.LONG)
    return jsonify(payload)


@categories_bp.route('/admin/categories', methods=['GET'])
@require_role('admin')
def admin_list_categories():
    categories = CourseCategory.query.order_by(CourseCategory.name).all()
    return jsonify({'categories': [category_with_count(c) for c in categories]})


@categories_bp.route('/admin/categories', methods=['POST'])
@require_role('admin')
def create_category():
    data = request.get_json(silent=True) or {}
    require_fields(data, ['name'])

    name = data['name'].strip()
    slug = slugify(data.get('slug') or name)

    if CourseCategory.query.filter(
        db.or_(CourseCategory.name == name, CourseCategory.slug == slug)
    ).first():
        raise ConflictError('A category with this name or slug already exists')

    category = CourseCategory(
        name=name,
        slug=slug,
        description=data.get('description'),
        icon=data.get('icon'),
        color=data.get('color'),
        is_active=parse_bool(data.get('is_active'), default=True),
    )
    db.session.add(category)
    db.session.commit()
    invalidate_categories()

    return jsonify({'message': 'Category created successfully', 'category': category.to_dict()}), 201


@categories_bp.route('/admin/categories/<category_id>', methods=['PUT'])
@require_role('admin')
def update_category(category_id):
    category = get_category_or_404(category_id)
    data = request.get_json(silent=True) or {}

    if 'slug' in data:
        slug = slugify(data['slug'])
        if CourseCategory.query.filter(CourseCategory.slug == slug,
                                       CourseCategory.id != category.id).first():
            raise ConflictError('A category with this slug already exists')
        category.slug = slug

    category.update(**{f: data[f] for f in UPDATABLE_FIELDS if f in data})
    db.session.commit()
    invalidate_categories()

    return jsonify({'message': 'Category updated successfully', 'category': category.to_dict()})


@categories_bp.route('/admin/categories/<category_id>', methods=['DELETE'])
@require_role('admin')
def delete_category(category_id):
    """
    Delete a category; its courses become uncategorised
    """
    category = get_category_or_404(category_id)
    db.session.delete(category)
    db.session.commit()
    invalidate_categories()

    return jsonify({'message': 'Category deleted successfully'})
