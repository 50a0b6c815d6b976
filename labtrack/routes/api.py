"""
JSON API: demo login, badge scanning, usage logging, and the room and teacher
registries.
"""

import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file, session

from labtrack.decorators import admin_required, login_required
from labtrack.extensions import get_manager
from labtrack.modules.qr_generator import ScanError, ScannedIdentity, describe_camera_error, parse_ocr_text, parse_scan

api_bp = Blueprint('api', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)

SCANNED_TEACHER_KEY = 'scanned_teacher'


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _failure(result, status=400):
    return jsonify({'success': False, 'error': result['error']}), status


def _send_png(result):
    return send_file(
        io.BytesIO(result['image_png']),
        mimetype='image/png',
        as_attachment=request.args.get('download') == '1',
        download_name=result['filename']
    )


@api_bp.route('/auth/login', methods=['POST'])
def demo_login():
    """Demo email/password login used by the sample front end"""
    status, body = get_manager('demo_authenticator').authenticate(request.get_json(silent=True))
    return jsonify(body), status


# Scanning and usage logging

@api_bp.route('/scan', methods=['POST'])
@login_required
def process_scan():
    """
    Read a teacher identity from a QR payload, a typed code, or OCR text and
    remember it for the next usage submission.
    """
    data = _json_body()

    try:
        if data.get('ocr_text'):
            identity = parse_ocr_text(data['ocr_text'], current_app.config['DEFAULT_DEPARTMENT'])
        else:
            identity = parse_scan(str(data.get('code') or ''), current_app.config['SCAN_CODE_DIRECTORY'])
    except ScanError as e:
        logger.warning(f"Scan rejected: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 400

    session[SCANNED_TEACHER_KEY] = identity.to_dict()
    logger.info(f"Teacher {identity.id} scanned")
    return jsonify({'success': True, 'teacher': identity.to_dict()})


@api_bp.route('/scan', methods=['GET'])
@login_required
def scanned_teacher():
    data = session.get(SCANNED_TEACHER_KEY)
    return jsonify({'success': True, 'teacher': data})


@api_bp.route('/scan', methods=['DELETE'])
@login_required
def reset_scan():
    session.pop(SCANNED_TEACHER_KEY, None)
    return jsonify({'success': True})


@api_bp.route('/camera-error', methods=['POST'])
def camera_error():
    """Translate a browser camera failure into the message shown to the user"""
    data = _json_body()
    message = describe_camera_error(
        str(data.get('name') or 'Error'),
        protocol=str(data.get('protocol') or request.scheme + ':'),
        hostname=str(data.get('hostname') or request.host.split(':')[0])
    )
    return jsonify({'success': True, 'message': message})


@api_bp.route('/usage', methods=['POST'])
@login_required
def submit_usage():
    """Check the scanned teacher in to, or out of, a room"""
    stored = session.get(SCANNED_TEACHER_KEY)
    teacher = ScannedIdentity.from_dict(stored) if stored else None

    result = get_manager('checkin_manager').process_submission(teacher, _json_body() or request.form)
    if not result['success']:
        status = 409 if result.get('error_type') == 'duplicate_open_entry' else 400
        return _failure(result, status)

    session.pop(SCANNED_TEACHER_KEY, None)

    return jsonify({
        'success': True,
        'action': result['action'],
        'index': result['index'],
        'entry': result['entry'].to_dict(),
        'message': result['message']
    })


# Room registry

@api_bp.route('/rooms', methods=['GET'])
@login_required
def list_rooms():
    rooms = get_manager('room_manager').get_all_rooms()
    return jsonify({'success': True, 'rooms': [room.to_dict() for room in rooms]})


@api_bp.route('/rooms', methods=['POST'])
@admin_required
def create_room():
    data = _json_body()
    result = get_manager('room_manager').create_room(
        data.get('number'),
        data.get('name'),
        capacity=data.get('capacity'),
        equipment=data.get('equipment')
    )
    if not result['success']:
        return _failure(result)

    return jsonify({'success': True, 'room': result['room'].to_dict(), 'message': result['message']}), 201


@api_bp.route('/rooms/<room_id>', methods=['PUT'])
@admin_required
def update_room(room_id):
    result = get_manager('room_manager').update_room(room_id, _json_body())
    if not result['success']:
        return _failure(result, 404 if result['error'] == 'Room not found' else 400)

    return jsonify({'success': True, 'room': result['room'].to_dict(), 'message': result['message']})


@api_bp.route('/rooms/<room_id>', methods=['DELETE'])
@admin_required
def delete_room(room_id):
    if not get_manager('room_manager').delete_room(room_id):
        return jsonify({'success': False, 'error': 'Room not found'}), 404
    return jsonify({'success': True})


@api_bp.route('/rooms/<room_id>/qr', methods=['GET'])
@admin_required
def room_qr_code(room_id):
    room = get_manager('room_manager').get_room(room_id)
    if room is None:
        return jsonify({'success': False, 'error': 'Room not found'}), 404

    result = get_manager('qr_generator').generate_room_qr_code(room.to_dict())
    if not result['success']:
        return _failure(result, 500)
    return _send_png(result)


# Teacher registry

@api_bp.route('/teachers', methods=['GET'])
@admin_required
def list_teachers():
    include_hidden = request.args.get('include_hidden', 'true').lower() != 'false'
    include_blocked = request.args.get('include_blocked', 'true').lower() != 'false'

    teachers = get_manager('teacher_manager').get_all_teachers(
        include_hidden=include_hidden,
        include_blocked=include_blocked
    )
    return jsonify({'success': True, 'teachers': [teacher.to_dict() for teacher in teachers]})


@api_bp.route('/teachers', methods=['POST'])
@admin_required
def create_teacher():
    data = _json_body()
    result = get_manager('teacher_manager').create_teacher(
        data.get('id'),
        data.get('name'),
        data.get('department'),
        email=data.get('email')
    )
    if not result['success']:
        return _failure(result)

    return jsonify({'success': True, 'teacher': result['teacher'].to_dict(), 'message': result['message']}), 201


@api_bp.route('/teachers/<teacher_id>', methods=['PUT'])
@admin_required
def update_teacher(teacher_id):
    result = get_manager('teacher_manager').update_teacher(teacher_id, _json_body())
    if not result['success']:
        return _failure(result, 404 if result['error'] == 'Teacher not found' else 400)

    return jsonify({'success': True, 'teacher': result['teacher'].to_dict(), 'message': result['message']})


@api_bp.route('/teachers/<teacher_id>/status', methods=['POST'])
@admin_required
def set_teacher_status(teacher_id):
    status = str(_json_body().get('status') or '').strip().lower()
    result = get_manager('teacher_manager').set_status(teacher_id, status)
    if not result['success']:
        return _failure(result, 404 if result['error'] == 'Teacher not found' else 400)

    return jsonify({'success': True, 'teacher': result['teacher'].to_dict()})


@api_bp.route('/teachers/<teacher_id>/badge', methods=['GET'])
@admin_required
def teacher_badge(teacher_id):
    teacher = get_manager('teacher_manager').get_teacher(teacher_id)
    if teacher is None:
        return jsonify({'success': False, 'error': 'Teacher not found'}), 404

    result = get_manager('qr_generator').generate_teacher_badge(teacher.to_dict())
    if not result['success']:
        return _failure(result, 500)
    return _send_png(result)
