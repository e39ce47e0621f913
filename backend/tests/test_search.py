#!/usr/bin/env python
"""
Tests for course search (ILIKE fallback on SQLite) and its helpers
"""
import pytest
from sqlalchemy.dialects import postgresql

from services.search import (
    SearchService, SimpleSearchService, build_tsquery, extract_snippet, get_popular_searches,
    get_search_service, get_suggestions, highlight_text,
)


class TestSearchHelpers:

    def test_build_tsquery(self):
        assert build_tsquery('web dev') == 'web:* & dev:*'
        assert build_tsquery("c++ & (rust)") == 'c++:* & rust:*'
        assert build_tsquery('   ') == ''

    def test_highlight_is_case_insensitive(self):
        assert highlight_text('Intro to Python', 'python') == 'Intro to <mark>Python</mark>'
        assert highlight_text(None, 'python') is None

    def test_highlight_terms_do_not_touch_tags(self):
        assert highlight_text('Python for a mark', 'python mark a') == \
            '<mark>Python</mark> for <mark>a</mark> <mark>mark</mark>'
        assert highlight_text('Data', 'd data') == '<mark>Data</mark>'

    def test_snippet_centres_on_match(self):
        text = 'a' * 200 + ' python ' + 'b' * 200
        snippet = extract_snippet(text, 'python')
        assert 'python' in snippet
        assert snippet.startswith('...') and snippet.endswith('...')

    def test_snippet_without_match_truncates(self):
        assert extract_snippet('x' * 200, 'python') == 'x' * 150 + '...'
        assert extract_snippet('', 'python') == ''


class TestFullTextSearch:

    @staticmethod
    def to_sql(query):
        return str(query.statement.compile(dialect=postgresql.dialect(),
                                           compile_kwargs={'literal_binds': True}))

    def test_course_query_is_ranked(self, app):
        with app.app_context():
            ranked, count = SearchService.course_search(build_tsquery('web dev'))
            sql = self.to_sql(ranked)
            count_sql = self.to_sql(count)

        assert "to_tsvector('english', courses.title)" in sql
        assert "@@ to_tsquery('english', 'web:* & dev:*')" in sql
        assert 'ts_rank(' in sql
        assert 'ORDER BY relevance DESC' in sql
        assert 'courses.is_active IS true' in sql
        assert '@@ to_tsquery' in count_sql

    def test_course_filters(self, app):
        with app.app_context():
            ranked, _ = SearchService.course_search('python:*', category='programming',
                                                    level='advanced')
            sql = self.to_sql(ranked)

        assert "course_categories.slug = 'programming'" in sql
        assert "courses.level = 'advanced'" in sql

    def test_user_query(self, app):
        with app.app_context():
            ranked, _ = SearchService.user_search('ada:*', role='teacher')
            sql = self.to_sql(ranked)

        assert "to_tsvector('english', users.email)" in sql
        assert "users.role = 'teacher'" in sql
        assert 'ORDER BY relevance DESC' in sql

    def test_database_errors_give_empty_results(self, app, make_course):
        make_course(title='Python Fundamentals')
        with app.app_context():
            # SQLite has no to_tsvector
            assert SearchService.search_courses('python') == {'results': [], 'total': 0}
            assert SearchService.search_users('python') == {'results': [], 'total': 0}


class TestSimpleSearch:

    @pytest.fixture
    def catalog(self, make_user, make_course):
        teacher = make_user('teacher', name='Ada Lovelace')
        make_course(title='Python Fundamentals', description='Learn Python from scratch',
                    teacher_id=teacher['id'], category_slug='programming')
        make_course(title='Advanced Python', level='advanced', category_slug='programming')
        make_course(title='Graphic Design Basics', category_slug='design')
        make_course(title='Python Archive', is_active=False)
        return teacher

    def test_sqlite_uses_fallback(self, app):
        with app.app_context():
            assert get_search_service() is SimpleSearchService

    def test_matches_active_courses_only(self, app, catalog):
        with app.app_context():
            found = SimpleSearchService.search_courses('python')
            titles = {r['title'] for r in found['results']}
            assert titles == {'Python Fundamentals', 'Advanced Python'}
            assert found['total'] == 2
            assert all(r['relevance'] == 1 for r in found['results'])

    def test_filters(self, app, catalog):
        with app.app_context():
            by_level = SimpleSearchService.search_courses('python', level='advanced')
            assert [r['title'] for r in by_level['results']] == ['Advanced Python']

            by_category = SimpleSearchService.search_courses('basics', category='design')
            assert by_category['total'] == 1
            assert by_category['results'][0]['category_slug'] == 'design'

    def test_teacher_name_is_joined(self, app, catalog):
        with app.app_context():
            found = SimpleSearchService.search_courses('fundamentals')
            assert found['results'][0]['teacher_name'] == 'Ada Lovelace'

    def test_wildcards_are_literal(self, app, catalog):
        with app.app_context():
            assert SimpleSearchService.search_courses('%')['total'] == 0

    def test_empty_query(self, app, catalog):
        with app.app_context():
            assert SimpleSearchService.search_courses('  ') == {'results': [], 'total': 0}
            assert SearchService.search_courses('') == {'results': [], 'total': 0}

    def test_search_users(self, app, catalog):
        with app.app_context():
            found = SimpleSearchService.search_users('lovelace', role='teacher')
            assert found['total'] == 1
            assert found['results'][0]['role'] == 'teacher'

    def test_suggestions(self, app, catalog):
        with app.app_context():
            assert get_suggestions('p') == []
            suggestions = get_suggestions('py')
            assert {'text': 'Python Fundamentals', 'type': 'course', 'count': 1} in suggestions
            assert all(s['text'] != 'Python Archive' for s in suggestions)

    def test_popular_searches(self, app, catalog):
        with app.app_context():
            popular = get_popular_searches(limit=2)
            assert len(popular) == 2
            assert 'Python Archive' not in popular


class TestSearchEndpoints:

    def test_course_search_highlights(self, client, make_course):
        make_course(title='Python Fundamentals', description='Learn Python from scratch')
        response = client.get('/api/search/courses?q=python')

        assert response.status_code == 200
        body = response.get_json()
        assert body['total'] == 1
        assert body['results'][0]['highlighted_title'] == '<mark>Python</mark> Fundamentals'
        assert '<mark>Python</mark>' in body['results'][0]['snippet']

    def test_suggestions_endpoint(self, client, make_course):
        make_course(title='Data Science')
        response = client.get('/api/search/suggestions?q=dat')
        assert response.get_json()['suggestions'][0]['text'] == 'Data Science'

    def test_user_search_is_admin_only(self, client, make_user, login, admin_headers):
        student = login(make_user('student'))
        assert client.get('/api/search/users?q=a', headers=student).status_code == 403
        assert client.get('/api/search/users?q=admin', headers=admin_headers).status_code == 200
