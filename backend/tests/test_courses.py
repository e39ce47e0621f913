#!/usr/bin/env python
"""
Tests for the catalog, schedules, grading, feedback and dashboards
"""
from unittest.mock import MagicMock

import pytest


@pytest.fixture
def teacher(make_user):
    return make_user('teacher', name='Barbara Liskov')


@pytest.fixture
def teacher_headers(teacher, login):
    return login(teacher)


@pytest.fixture
def course_id(make_course, teacher):
    return make_course(title='Data Abstraction', price=250, teacher_id=teacher['id'])


@pytest.fixture
def enrolled(make_user, make_enrollment, course_id):
    """A student enrolled in the teacher's course"""
    student = make_user('student')
    student['enrollment_id'] = make_enrollment(student['id'], course_id)
    return student


class TestCategories:

    def test_admin_crud_and_public_list(self, client, admin_headers, make_course):
        response = client.post('/api/admin/categories', headers=admin_headers,
                               json={'name': 'Web Development'})
        assert response.status_code == 201
        category = response.get_json()['category']
        assert category['slug'] == 'web-development'

        make_course(title='Flask APIs', category_slug='web-development')
        body = client.get('/api/categories').get_json()
        assert body['categories'][0]['course_count'] == 1

        duplicate = client.post('/api/admin/categories', headers=admin_headers,
                                json={'name': 'Web Development'})
        assert duplicate.status_code == 409

        response = client.delete(f"/api/admin/categories/{category['id']}", headers=admin_headers)
        assert response.status_code == 200


class TestCatalog:

    def test_public_list_hides_inactive(self, client, make_course):
        make_course(title='Visible')
        make_course(title='Hidden', is_active=False)

        body = client.get('/api/courses').get_json()
        assert [c['title'] for c in body['courses']] == ['Visible']

    def test_filters(self, client, make_course):
        make_course(title='Intro', level='beginner', category_slug='programming')
        make_course(title='Deep Dive', level='advanced', category_slug='programming')
        make_course(title='Sketching', category_slug='design')

        body = client.get('/api/courses?category=programming&level=advanced').get_json()
        assert [c['title'] for c in body['courses']] == ['Deep Dive']

    def test_detail_includes_stats_and_rating(self, client, course_id, teacher):
        body = client.get(f'/api/courses/{course_id}').get_json()
        assert body['teacher_name'] == 'Barbara Liskov'
        assert body['stats']['total_enrollments'] == 0
        assert body['rating'] == {'average': 0.0, 'count': 0}

    def test_unknown_course(self, client):
        assert client.get('/api/courses/nope').status_code == 404

    def test_catalog_is_served_from_cache(self, app, client, make_course):
        make_course(title='Visible')
        fake_redis = MagicMock()
        fake_redis.get.return_value = '[{"id": "cached", "title": "From cache"}]'
        app.extensions['redis'] = fake_redis

        body = client.get('/api/courses').get_json()
        assert body['courses'][0]['title'] == 'From cache'
        fake_redis.get.assert_called_with('courses:active')


class TestAdminCourses:

    def test_create_update(self, client, admin_headers, teacher):
        response = client.post('/api/admin/courses', headers=admin_headers, json={
            'title': 'Distributed Systems', 'price': '199.99', 'teacher_id': teacher['id'],
            'delivery_mode': 'hybrid',
        })
        assert response.status_code == 201
        course = response.get_json()['course']
        assert course['price'] == 199.99

        response = client.put(f"/api/admin/courses/{course['id']}", headers=admin_headers,
                              json={'level': 'advanced'})
        assert response.get_json()['course']['level'] == 'advanced'

    def test_invalid_level(self, client, admin_headers):
        response = client.post('/api/admin/courses', headers=admin_headers, json={
            'title': 'Broken', 'level': 'expert',
        })
        assert response.status_code == 400

    def test_non_finite_price(self, client, admin_headers):
        response = client.post('/api/admin/courses', headers=admin_headers, json={
            'title': 'Broken', 'price': 'NaN',
        })
        assert response.status_code == 400

    def test_delete_with_enrollments_deactivates(self, client, admin_headers, course_id, enrolled):
        response = client.delete(f'/api/admin/courses/{course_id}', headers=admin_headers)
        assert response.get_json()['deactivated'] is True
        assert client.get(f'/api/courses/{course_id}').status_code == 404

    def test_delete_without_enrollments(self, client, admin_headers, make_course):
        course = make_course(title='Empty')
        response = client.delete(f'/api/admin/courses/{course}', headers=admin_headers)
        assert response.get_json()['deactivated'] is False


class TestTeacherCourses:

    def test_own_courses_only(self, client, teacher_headers, course_id, make_course):
        make_course(title='Someone Else')
        body = client.get('/api/teacher/courses', headers=teacher_headers).get_json()
        assert [c['title'] for c in body['courses']] == ['Data Abstraction']

    def test_create_owned_course(self, client, teacher_headers, teacher):
        response = client.post('/api/teacher/courses', headers=teacher_headers,
                               json={'title': 'CLU Workshop', 'teacher_id': 'ignored'})
        assert response.get_json()['course']['teacher_id'] == teacher['id']

    def test_cannot_edit_others(self, client, teacher_headers, make_course):
        other = make_course(title='Someone Else')
        response = client.put(f'/api/teacher/courses/{other}', headers=teacher_headers,
                              json={'title': 'Mine now'})
        assert response.status_code == 403


class TestSchedules:

    def test_create_and_list(self, client, teacher_headers, course_id):
        response = client.post(f'/api/courses/{course_id}/schedules', headers=teacher_headers,
                               json={'day_of_week': 'Monday', 'start_time': '09:00',
                                     'end_time': '11:00', 'location': 'Room 4'})
        assert response.status_code == 201
        assert response.get_json()['schedule']['day_of_week'] == 'monday'

        body = client.get(f'/api/courses/{course_id}/schedules').get_json()
        assert body['total'] == 1

    def test_end_must_follow_start(self, client, teacher_headers, course_id):
        response = client.post(f'/api/courses/{course_id}/schedules', headers=teacher_headers,
                               json={'day_of_week': 'friday', 'start_time': '14:00',
                                     'end_time': '13:00'})
        assert response.status_code == 400

    def test_move_later(self, client, teacher_headers, course_id):
        schedule = client.post(f'/api/courses/{course_id}/schedules', headers=teacher_headers,
                               json={'day_of_week': 'tuesday', 'start_time': '09:00',
                                     'end_time': '10:00'}).get_json()['schedule']

        response = client.put(f"/api/schedules/{schedule['id']}", headers=teacher_headers,
                              json={'start_time': '15:00', 'end_time': '16:30'})
        assert response.status_code == 200
        assert response.get_json()['schedule']['start_time'] == '15:00'

    def test_other_teacher_denied(self, client, make_user, login, course_id):
        other = login(make_user('teacher'))
        response = client.post(f'/api/courses/{course_id}/schedules', headers=other,
                               json={'day_of_week': 'monday', 'start_time': '09:00',
                                     'end_time': '10:00'})
        assert response.status_code == 403


class TestGrades:

    def test_score_lifecycle(self, client, teacher_headers, enrolled):
        response = client.post('/api/teacher/scores', headers=teacher_headers, json={
            'enrollment_id': enrolled['enrollment_id'], 'title': 'Midterm',
            'score': 42, 'max_score': 50,
        })
        assert response.status_code == 201
        score = response.get_json()['score']
        assert score['percentage'] == 84.0

        response = client.put(f"/api/teacher/scores/{score['id']}", headers=teacher_headers,
                              json={'score': 18, 'max_score': 20})
        assert response.get_json()['score']['percentage'] == 90.0

        response = client.delete(f"/api/teacher/scores/{score['id']}", headers=teacher_headers)
        assert response.status_code == 200

    def test_score_over_max(self, client, teacher_headers, enrolled):
        response = client.post('/api/teacher/scores', headers=teacher_headers, json={
            'enrollment_id': enrolled['enrollment_id'], 'title': 'Quiz', 'score': 120,
        })
        assert response.status_code == 400

    @pytest.mark.parametrize('field', ['score', 'max_score'])
    def test_non_finite_numbers_rejected(self, client, teacher_headers, enrolled, field):
        payload = {'enrollment_id': enrolled['enrollment_id'], 'title': 'Quiz',
                   'score': 10, 'max_score': 20}
        payload[field] = 'NaN'
        response = client.post('/api/teacher/scores', headers=teacher_headers, json=payload)
        assert response.status_code == 400

        payload[field] = 'inf'
        response = client.post('/api/teacher/scores', headers=teacher_headers, json=payload)
        assert response.status_code == 400

    def test_other_teacher_cannot_grade(self, client, make_user, login, enrolled):
        other = login(make_user('teacher'))
        response = client.post('/api/teacher/scores', headers=other, json={
            'enrollment_id': enrolled['enrollment_id'], 'title': 'Quiz', 'score': 10,
        })
        assert response.status_code == 403

    def test_attendance_upserts_by_date(self, client, teacher_headers, enrolled):
        payload = {'enrollment_id': enrolled['enrollment_id'], 'date': '2025-03-03',
                   'status': 'present'}
        assert client.post('/api/teacher/attendance', headers=teacher_headers,
                           json=payload).status_code == 201

        payload['status'] = 'late'
        response = client.post('/api/teacher/attendance', headers=teacher_headers, json=payload)
        assert response.status_code == 200
        assert response.get_json()['attendance']['status'] == 'late'

        body = client.get(f"/api/teacher/enrollments/{enrolled['enrollment_id']}/attendance",
                          headers=teacher_headers).get_json()
        assert body['total'] == 1
        assert body['attendance_rate'] == 100

    def test_attendance_bad_status(self, client, teacher_headers, enrolled):
        response = client.post('/api/teacher/attendance', headers=teacher_headers, json={
            'enrollment_id': enrolled['enrollment_id'], 'date': '2025-03-03', 'status': 'asleep',
        })
        assert response.status_code == 400


class TestFeedback:

    def test_one_review_per_enrollment(self, client, login, enrolled, course_id):
        headers = login(enrolled)
        response = client.post('/api/course-feedback', headers=headers, json={
            'course_id': course_id, 'rating': 4, 'comment': 'Clear and useful',
        })
        assert response.status_code == 201

        again = client.post('/api/course-feedback', headers=headers, json={
            'course_id': course_id, 'rating': 5,
        })
        assert again.status_code == 409

        body = client.get(f'/api/course-feedback?course_id={course_id}').get_json()
        assert body['average_rating'] == 4.0
        assert body['feedback'][0]['student_name'] != 'Anonymous'

    def test_anonymous_and_rating_bounds(self, client, login, enrolled, course_id):
        headers = login(enrolled)
        bad = client.post('/api/course-feedback', headers=headers, json={
            'course_id': course_id, 'rating': 6,
        })
        assert bad.status_code == 400

        client.post('/api/course-feedback', headers=headers, json={
            'course_id': course_id, 'rating': 3, 'is_anonymous': True,
        })
        body = client.get(f'/api/course-feedback?course_id={course_id}').get_json()
        assert body['feedback'][0]['student_name'] == 'Anonymous'

    def test_must_be_enrolled(self, client, make_user, login, course_id):
        headers = login(make_user('student'))
        response = client.post('/api/course-feedback', headers=headers, json={
            'course_id': course_id, 'rating': 5,
        })
        assert response.status_code == 404


class TestDashboards:

    def test_student_dashboard(self, client, login, enrolled):
        body = client.get('/api/dashboard/student', headers=login(enrolled)).get_json()
        stats = body['stats']
        assert stats['total_courses'] == 1
        assert stats['active_courses'] == 1
        assert stats['total_owed'] == 250.0

    def test_teacher_dashboard(self, client, teacher_headers, enrolled):
        client.post('/api/teacher/attendance', headers=teacher_headers, json={
            'enrollment_id': enrolled['enrollment_id'], 'date': '2025-03-03', 'status': 'absent',
        })
        stats = client.get('/api/dashboard/teacher', headers=teacher_headers).get_json()['stats']
        assert stats['total_courses'] == 1
        assert stats['total_students'] == 1
        assert stats['attendance_rate'] == 0

    def test_admin_dashboard(self, client, admin_headers, enrolled):
        body = client.get('/api/dashboard/admin', headers=admin_headers).get_json()
        assert body['platform']['users']['by_role']['student'] == 1
        assert body['enrollments']['active_enrollments'] == 1
        assert body['revenue']['total_revenue'] == 0

    def test_role_checks(self, client, login, enrolled):
        assert client.get('/api/dashboard/admin', headers=login(enrolled)).status_code == 403
