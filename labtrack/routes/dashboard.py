"""
Role dashboards.

Professors get the scanner overview and their usage history; administrators
get the usage overview, the room and teacher registries and the usage reports.
"""

import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file

from labtrack.decorators import admin_required, current_user, login_required, professor_required
from labtrack.extensions import get_manager
from labtrack.modules.identity_resolver import Role

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/dashboard')
logger = logging.getLogger(__name__)

FILTER_ARGS = ('room', 'purpose', 'start_date', 'end_date')


def _usage_filters():
    return {name: request.args.get(name, '').strip() for name in FILTER_ARGS}


def _send_export(result):
    return send_file(
        io.BytesIO(result['content']),
        mimetype=result['mimetype'],
        as_attachment=True,
        download_name=result['filename']
    )


@dashboard_bp.route('', methods=['GET'])
@login_required
def dashboard():
    """Overview for the signed-in role"""
    user = current_user()
    reports = get_manager('report_generator')

    try:
        if user.role == Role.ADMIN:
            data = reports.admin_dashboard()
            data['total_teachers'] = get_manager('teacher_manager').get_teacher_count()
        else:
            data = reports.professor_dashboard(current_app.config['RECENT_ENTRIES_LIMIT'])
            data['buildings'] = current_app.config['BUILDINGS']

        return jsonify({'success': True, 'role': user.role.value, 'user': user.to_dict(), 'data': data})

    except Exception as e:
        logger.error(f"Dashboard error: {str(e)}")
        return jsonify({'success': False, 'error': 'Error loading dashboard data.'}), 500


@dashboard_bp.route('/history', methods=['GET'])
@professor_required
def history():
    return jsonify({'success': True, **get_manager('report_generator').history()})


@dashboard_bp.route('/history/<int:index>', methods=['DELETE'])
@professor_required
def delete_history_entry(index):
    removed = get_manager('session_store').delete_entry(index)
    if removed is None:
        return jsonify({'success': False, 'error': 'Usage entry not found'}), 404

    logger.info(f"Usage entry {index} deleted ({removed.teacher_id}, {removed.room_label})")
    return jsonify({'success': True, 'entry': removed.to_dict()})


@dashboard_bp.route('/rooms', methods=['GET'])
@admin_required
def rooms():
    """Room and teacher registries"""
    include_hidden = request.args.get('include_hidden', 'true').lower() != 'false'
    include_blocked = request.args.get('include_blocked', 'true').lower() != 'false'

    room_list = get_manager('room_manager').get_all_rooms()
    teachers = get_manager('teacher_manager').get_all_teachers(
        include_hidden=include_hidden,
        include_blocked=include_blocked
    )
    return jsonify({
        'success': True,
        'rooms': [room.to_dict() for room in room_list],
        'teachers': [teacher.to_dict() for teacher in teachers]
    })


@dashboard_bp.route('/usage', methods=['GET'])
@admin_required
def usage():
    """Filtered usage report"""
    try:
        report = get_manager('report_generator').usage_report(_usage_filters())
    except ValueError as e:
        return jsonify({'success': False, 'error': f'Invalid filter: {str(e)}'}), 400

    return jsonify({'success': True, **report})


@dashboard_bp.route('/usage/export.csv', methods=['GET'])
@admin_required
def export_csv():
    reports = get_manager('report_generator')
    try:
        entries = reports.get_filtered_entries(_usage_filters())
    except ValueError as e:
        return jsonify({'success': False, 'error': f'Invalid filter: {str(e)}'}), 400

    return _send_export(reports.export_csv(entries))


@dashboard_bp.route('/usage/export.xlsx', methods=['GET'])
@admin_required
def export_excel():
    reports = get_manager('report_generator')
    try:
        entries = reports.get_filtered_entries(_usage_filters())
    except ValueError as e:
        return jsonify({'success': False, 'error': f'Invalid filter: {str(e)}'}), 400

    return _send_export(reports.export_excel(entries))


@dashboard_bp.route('/usage/export.pdf', methods=['GET'])
@admin_required
def export_pdf():
    """PDF report for a period: all, day, week or month"""
    period = request.args.get('period', 'all').strip().lower()
    try:
        result = get_manager('report_generator').export_pdf(period)
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    return _send_export(result)
