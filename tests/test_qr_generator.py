"""Tests for scan parsing and QR code generation."""

import io

import pytest
from PIL import Image

from labtrack.config import Config
from labtrack.modules.qr_generator import (
    QRGenerator, ScanError, describe_camera_error, parse_ocr_text, parse_scan,
)


class TestParseScan:
    def test_badge_payload(self):
        identity = parse_scan(' Chemistry , Dr. Smith , T-1001 ')
        assert (identity.department, identity.name, identity.id) == ('Chemistry', 'Dr. Smith', 'T-1001')

    def test_directory_code_ignores_case(self):
        identity = parse_scan('TEACHER-2', Config.SCAN_CODE_DIRECTORY)
        assert identity.id == 'T-1002'

    def test_invalid_format(self):
        with pytest.raises(ScanError) as excinfo:
            parse_scan('hello world')
        assert str(excinfo.value) == 'Invalid Format. Expected "Department,Name,ID". Scanned: hello world'

    def test_two_parts_is_invalid(self):
        with pytest.raises(ScanError):
            parse_scan('Chemistry,Dr. Smith')

    def test_empty(self):
        with pytest.raises(ScanError):
            parse_scan('   ')


class TestParseOcr:
    def test_id_card_text(self):
        text = "NEW ERA UNIVERSITY\nFaculty Identification\nMaria Santos\nChemistry\nID No: t-2045\n"
        identity = parse_ocr_text(text)
        assert identity.id == 'T-2045'
        assert identity.name == 'Maria Santos'
        assert identity.department == 'Chemistry'

    def test_missing_department_uses_default(self):
        identity = parse_ocr_text("Juan Cruz\nT-3001", default_department='Unassigned')
        assert identity.department == 'Unassigned'

    def test_no_id(self):
        with pytest.raises(ScanError):
            parse_ocr_text("Juan Cruz\nChemistry")


class TestCameraErrors:
    def test_known_errors(self):
        assert describe_camera_error('NotAllowedError').startswith('Camera permission denied')
        assert describe_camera_error('NotFoundError') == 'No camera found on this device. (NotFoundError)'

    def test_insecure_origin(self):
        message = describe_camera_error('TypeError', protocol='http:', hostname='192.168.1.5')
        assert message.startswith('Camera requires HTTPS')

    def test_generic(self):
        assert describe_camera_error('AbortError') == 'Cannot access camera. (AbortError)'


class TestQRGenerator:
    def test_room_qr_code(self):
        result = QRGenerator().generate_room_qr_code({'number': '101', 'qrCode': 'room-101'})
        assert result['success']
        assert result['qr_data'] == 'room-101'
        assert result['filename'] == 'room-101.png'
        assert Image.open(io.BytesIO(result['image_png'])).format == 'PNG'

    def test_teacher_badge(self):
        result = QRGenerator().generate_teacher_badge({'id': 'T-1001', 'name': 'Dr. Smith', 'department': 'Chemistry'})
        assert result['success']
        assert result['qr_data'] == 'Chemistry,Dr. Smith,T-1001'
        width, height = result['image_size']
        assert height > width

    def test_badge_round_trips_through_parser(self):
        payload = QRGenerator().generate_teacher_badge(
            {'id': 'T-1004', 'name': 'Prof. Davis', 'department': 'Engineering'})['qr_data']
        assert parse_scan(payload).id == 'T-1004'

    def test_badge_requires_id(self):
        assert not QRGenerator().generate_teacher_badge({'name': 'Nobody'})['success']
