"""
Dashboard and reporting aggregates
Each public function returns plain JSON-friendly dicts and is cached in Redis.
"""
from sqlalchemy import case, func

from app import db
from models.course import Course
from models.enrollment import ENROLLMENT_STATUSES, Enrollment
from models.grade import Attendance, Score
from models.payment import PAYMENT_STATUSES, Payment
from models.user import ROLES, User
from services.cache import CacheKeys, CacheTTL, cached


def _money(value):
    return round(float(value or 0), 2)


def _percent(part, whole):
    return int(round(part / whole * 100)) if whole else 0


def payment_stats():
    """Counts and amounts per payment status"""
    rows = (
        db.session.query(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.status)
        .all()
    )
    by_status = {status: {'count': 0, 'amount': 0.0} for status in PAYMENT_STATUSES}
    for status, count, amount in rows:
        by_status[status] = {'count': count, 'amount': _money(amount)}

    total = sum(s['count'] for s in by_status.values())
    completed = by_status['completed']
    return {
        'total_payments': total,
        'completed_payments': completed['count'],
        'pending_payments': by_status['pending']['count'],
        'failed_payments': by_status['failed']['count'],
        'refunded_payments': by_status['refunded']['count'],
        'total_amount': completed['amount'],
        'pending_amount': by_status['pending']['amount'],
        'completion_rate': _percent(completed['count'], total),
    }


@cached(lambda student_id: CacheKeys.student_dashboard(student_id), CacheTTL.MEDIUM)
def student_dashboard(student_id):
    enrollments = Enrollment.query.filter_by(student_id=student_id).all()

    total = len(enrollments)
    active = sum(1 for e in enrollments if e.status == 'active')
    completed = sum(1 for e in enrollments if e.status == 'completed')
    countable = [e for e in enrollments if e.status != 'dropped']

    return {
        'total_courses': total,
        'active_courses': active,
        'completed_courses': completed,
        'average_progress': int(round(sum(e.progress for e in enrollments) / total)) if total else 0,
        'total_spent': _money(sum(e.paid_amount or 0 for e in enrollments)),
        'total_owed': _money(sum(e.remaining_balance for e in countable)),
        'completion_rate': _percent(completed, total),
        'recent_enrollments': [
            e.to_dict(include_course=True)
            for e in sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)[:5]
        ],
    }


@cached(lambda teacher_id: CacheKeys.teacher_dashboard(teacher_id), CacheTTL.MEDIUM)
def teacher_dashboard(teacher_id):
    courses = Course.query.filter_by(teacher_id=teacher_id).all()
    course_ids = [c.id for c in courses]

    if not course_ids:
        return {
            'total_courses': 0, 'active_courses': 0, 'total_students': 0,
            'active_students': 0, 'average_score': 0, 'attendance_rate': 0, 'courses': [],
        }

    enrollment_filter = Enrollment.course_id.in_(course_ids)
    total_students = (
        db.session.query(func.count(func.distinct(Enrollment.student_id)))
        .filter(enrollment_filter).scalar()
    )
    active_students = (
        db.session.query(func.count(func.distinct(Enrollment.student_id)))
        .filter(enrollment_filter, Enrollment.status == 'active').scalar()
    )

    average_score = (
        db.session.query(func.avg(Score.score * 100.0 / Score.max_score))
        .join(Enrollment, Score.enrollment_id == Enrollment.id)
        .filter(enrollment_filter)
        .scalar()
    )

    attended, recorded = (
        db.session.query(
            func.coalesce(func.sum(case((Attendance.status.in_(('present', 'late')), 1), else_=0)), 0),
            func.count(Attendance.id),
        )
        .join(Enrollment, Attendance.enrollment_id == Enrollment.id)
        .filter(enrollment_filter)
        .one()
    )

    per_course = dict(
        db.session.query(Enrollment.course_id, func.count(Enrollment.id))
        .filter(enrollment_filter)
        .group_by(Enrollment.course_id)
        .all()
    )

    return {
        'total_courses': len(courses),
        'active_courses': sum(1 for c in courses if c.is_active),
        'total_students': total_students or 0,
        'active_students': active_students or 0,
        'average_score': round(float(average_score or 0), 2),
        'attendance_rate': _percent(int(attended or 0), recorded),
        'courses': [
            {'id': c.id, 'title': c.title, 'is_active': c.is_active,
             'enrollments': per_course.get(c.id, 0)}
            for c in courses
        ],
    }


@cached(lambda: CacheKeys.platform_stats(), CacheTTL.MEDIUM)
def platform_stats():
    users_by_role = {role: 0 for role in ROLES}
    for role, count in db.session.query(User.role, func.count(User.id)).group_by(User.role):
        users_by_role[role] = count

    enrollments_by_status = {status: 0 for status in ENROLLMENT_STATUSES}
    for status, count in (db.session.query(Enrollment.status, func.count(Enrollment.id))
                          .group_by(Enrollment.status)):
        enrollments_by_status[status] = count

    return {
        'users': {
            'total': sum(users_by_role.values()),
            'active': User.query.filter_by(is_active=True).count(),
            'verified': User.query.filter(User.email_verified_at.isnot(None)).count(),
            'by_role': users_by_role,
        },
        'courses': {
            'total': Course.query.count(),
            'active': Course.query.filter_by(is_active=True).count(),
        },
        'enrollments': {
            'total': sum(enrollments_by_status.values()),
            'by_status': enrollments_by_status,
        },
        'payments': payment_stats(),
    }


@cached(lambda: CacheKeys.revenue_analytics(), CacheTTL.MEDIUM)
def revenue_analytics():
    stats = payment_stats()
    completed = stats['completed_payments']
    return {
        'total_revenue': stats['total_amount'],
        'pending_revenue': stats['pending_amount'],
        'completed_payments': completed,
        'pending_payments': stats['pending_payments'],
        'average_payment_value': round(stats['total_amount'] / completed, 2) if completed else 0,
        'payment_completion_rate': stats['completion_rate'],
    }


@cached(lambda: CacheKeys.enrollment_analytics(), CacheTTL.MEDIUM)
def enrollment_analytics():
    total = Enrollment.query.count()
    completed = Enrollment.query.filter_by(status='completed').count()
    average_progress = db.session.query(func.avg(Enrollment.progress)).scalar()
    return {
        'total_enrollments': total,
        'active_enrollments': Enrollment.query.filter_by(status='active').count(),
        'completed_enrollments': completed,
        'completion_rate': _percent(completed, total),
        'average_progress': int(round(float(average_progress or 0))),
    }


@cached(lambda course_id: CacheKeys.course_stats(course_id), CacheTTL.MEDIUM)
def course_stats(course_id):
    counts = dict(
        db.session.query(Enrollment.status, func.count(Enrollment.id))
        .filter(Enrollment.course_id == course_id)
        .group_by(Enrollment.status)
        .all()
    )
    total = sum(counts.values())
    return {
        'total_enrollments': total,
        'active_enrollments': counts.get('active', 0),
        'completed_enrollments': counts.get('completed', 0),
        'completion_rate': _percent(counts.get('completed', 0), total),
    }


@cached(lambda: CacheKeys.admin_dashboard(), CacheTTL.SHORT)
def admin_dashboard():
    recent_users = User.query.order_by(User.created_at.desc()).limit(10).all()
    recent_payments = Payment.query.order_by(Payment.created_at.desc()).limit(10).all()
    return {
        'platform': platform_stats(),
        'revenue': revenue_analytics(),
        'enrollments': enrollment_analytics(),
        'recent': {
            'users': [u.to_dict() for u in recent_users],
            'payments': [p.to_dict() for p in recent_payments],
        },
    }
