# routes/search.py
from flask import Blueprint, jsonify, request

from services.search import (
    extract_snippet, get_popular_searches, get_search_service, get_suggestions, highlight_text,
)
from utils.auth import require_role

search_bp = Blueprint('search', __name__)

MAX_LIMIT = 50


def paging_args(default_limit=20):
    limit = min(max(request.args.get('limit', default_limit, type=int), 1), MAX_LIMIT)
    offset = max(request.args.get('offset', 0, type=int), 0)
    return limit, offset


@search_bp.route('/courses', methods=['GET'])
def search_courses():
    """
    Search active courses by title and description.
    Query params: q, category (slug), level, limit, offset
    """
    query = (request.args.get('q') or '').strip()
    limit, offset = paging_args()

    found = get_search_service().search_courses(
        query,
        category=request.args.get('category'),
        level=request.args.get('level'),
        limit=limit,
        offset=offset,
    )

    results = []
    for course in found['results']:
        course['highlighted_title'] = highlight_text(course['title'], query)
        course['snippet'] = highlight_text(extract_snippet(course.get('description'), query), query)
        results.append(course)

    return jsonify({
        'query': query,
        'results': results,
        'total': found['total'],
        'limit': limit,
        'offset': offset,
    })


@search_bp.route('/suggestions', methods=['GET'])
def suggestions():
    query = (request.args.get('q') or '').strip()
    limit = min(max(request.args.get('limit', 5, type=int), 1), MAX_LIMIT)
    return jsonify({'query': query, 'suggestions': get_suggestions(query, limit)})


@search_bp.route('/popular', methods=['GET'])
def popular():
    limit = min(max(request.args.get('limit', 10, type=int), 1), MAX_LIMIT)
    return jsonify({'searches': get_popular_searches(limit)})


@search_bp.route('/users', methods=['GET'])
@require_role('admin')
def search_users():
    query = (request.args.get('q') or '').strip()
    limit, offset = paging_args()

    found = get_search_service().search_users(
        query, role=request.args.get('role'), limit=limit, offset=offset
    )
    return jsonify({
        'query': query,
        'results': found['results'],
        'total': found['total'],
        'limit': limit,
        'offset': offset,
    })
