from flask import Blueprint, g, jsonify

from services import analytics
from utils.auth import require_role

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/student', methods=['GET'])
@require_role('student')
def student_dashboard():
    """
    Course counts, progress and money owed for the signed-in student
    """
    return jsonify({
        'user': g.current_user.to_dict(),
        'stats': analytics.student_dashboard(g.current_user.id),
    })


@dashboard_bp.route('/teacher', methods=['GET'])
@require_role('teacher')
def teacher_dashboard():
    """
    Courses, students, average score and attendance for the signed-in teacher
    """
    return jsonify({
        'user': g.current_user.to_dict(),
        'stats': analytics.teacher_dashboard(g.current_user.id),
    })


@dashboard_bp.route('/admin', methods=['GET'])
@require_role('admin')
def admin_dashboard():
    return jsonify(analytics.admin_dashboard())


@dashboard_bp.route('/admin/revenue', methods=['GET'])
@require_role('admin')
def revenue():
    return jsonify(analytics.revenue_analytics())


@dashboard_bp.route('/admin/enrollments', methods=['GET'])
@require_role('admin')
def enrollments():
    return jsonify(analytics.enrollment_analytics())
