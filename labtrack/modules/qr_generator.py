"""
QR Code Module - Lab Room Usage Tracker

This module covers both directions of the badge workflow: it renders QR codes
for rooms and teacher ID badges, and it turns whatever a scan produced (a QR
payload, OCR text from a photographed ID, or a code typed by hand) into a
scanned teacher identity.

Features:
- Room QR code generation (payload: the room's qrCode, e.g. "room-101")
- Teacher badge generation (payload: "Department,Name,ID") with caption
- Scan payload parsing with directory and OCR fallbacks
- Camera failure classification into user-facing messages
"""

import io
import re
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import qrcode
from PIL import Image, ImageDraw, ImageFont

TEACHER_ID_PATTERN = re.compile(r'\b([A-Z]{1,3}-?\d{3,6})\b', re.IGNORECASE)
NAME_LINE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z .,'-]+$")
OCR_HEADER_WORDS = ('university', 'college', 'faculty', 'identification', 'id card')

CAMERA_ERROR_MESSAGES = {
    'NotAllowedError': 'Camera permission denied. Please allow access in your browser settings.',
    'NotFoundError': 'No camera found on this device.',
    'NotReadableError': 'Camera is currently in use by another application.',
}
CAMERA_HTTPS_MESSAGE = 'Camera requires HTTPS. Please open the secure link.'
CAMERA_GENERIC_MESSAGE = 'Cannot access camera.'


class ScanError(ValueError):
    """Raised when scanned text cannot be turned into a teacher identity."""


@dataclass
class ScannedIdentity:
    """Teacher identity read from a badge or typed by hand."""
    id: str
    name: str
    department: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ScannedIdentity':
        return cls(
            id=str(data.get('id', '')).strip(),
            name=str(data.get('name', '')).strip(),
            department=str(data.get('department', '')).strip(),
        )

    def badge_payload(self) -> str:
        return f"{self.department},{self.name},{self.id}"


def parse_scan(value: str, directory: Optional[Mapping[str, Mapping[str, str]]] = None) -> ScannedIdentity:
    """
    Turn a QR payload or manually entered code into a scanned identity.

    Badges carry "Department,Name,ID". Short codes such as "teacher-1" are
    looked up in the directory, ignoring case.

    Raises:
        ScanError: if neither form applies
    """
    text = (value or '').strip()
    if not text:
        raise ScanError('No scan data provided')

    parts = [part.strip() for part in text.split(',')]
    if len(parts) == 3 and all(parts):
        department, name, teacher_id = parts
        return ScannedIdentity(id=teacher_id, name=name, department=department)

    known = (directory or {}).get(text.lower())
    if known:
        return ScannedIdentity.from_dict(known)

    raise ScanError(f'Invalid Format. Expected "Department,Name,ID". Scanned: {text}')


def parse_ocr_text(text: str, default_department: str = '') -> ScannedIdentity:
    """
    Pull a teacher identity out of OCR text read from a photographed ID card.

    The first teacher-id token (e.g. "T-1001") becomes the id, the first
    remaining line that looks like a name becomes the name, and the line after
    it, when present, the department.

    Raises:
        ScanError: if no id token or no name line is found
    """
    lines = [line.strip() for line in (text or '').splitlines() if line.strip()]

    teacher_id = None
    id_line = None
    for index, line in enumerate(lines):
        match = TEACHER_ID_PATTERN.search(line)
        if match:
            teacher_id = match.group(1).upper()
            id_line = index
            break

    if teacher_id is None:
        raise ScanError('Could not read a Teacher ID from the image. Please enter it manually.')

    candidates = [line for index, line in enumerate(lines)
                  if index != id_line and NAME_LINE_PATTERN.match(line)
                  and not any(word in line.lower() for word in OCR_HEADER_WORDS)]
    if not candidates:
        raise ScanError('Could not read a Teacher ID from the image. Please enter it manually.')

    department = candidates[1] if len(candidates) > 1 else default_department
    return ScannedIdentity(id=teacher_id, name=candidates[0], department=department)


def describe_camera_error(error_name: str, protocol: str = 'https:', hostname: str = 'localhost') -> str:
    """Map a browser camera failure to the message shown to the user."""
    if error_name in CAMERA_ERROR_MESSAGES:
        message = CAMERA_ERROR_MESSAGES[error_name]
    elif protocol != 'https:' and hostname != 'localhost':
        message = CAMERA_HTTPS_MESSAGE
    else:
        message = CAMERA_GENERIC_MESSAGE
    return f"{message} ({error_name})"


class QRGenerator:
    """
    QR code renderer for room door signs and teacher ID badges.
    """

    def __init__(self, box_size: int = 10, border: int = 4):
        self.logger = logging.getLogger(__name__)

        self.default_settings = {
            'version': 1,  # Grows automatically with fit=True
            'error_correction': qrcode.constants.ERROR_CORRECT_M,  # ~15% error correction
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def _make_image(self, payload: str) -> Image.Image:
        settings = self.default_settings
        qr = qrcode.QRCode(
            version=settings['version'],
            error_correction=settings['error_correction'],
            box_size=settings['box_size'],
            border=settings['border']
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=settings['fill_color'],
            back_color=settings['back_color']
        )
        return img.convert('RGB')

    @staticmethod
    def _to_png(img: Image.Image) -> bytes:
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return buffer.getvalue()

    def generate_room_qr_code(self, room: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Generate the door-sign QR code for a room.

        Args:
            room: Room record with 'qrCode' and 'number'

        Returns:
            Dict[str, Any]: Result with PNG bytes and filename
        """
        try:
            payload = room.get('qrCode') or f"room-{room['number']}"
            img = self._make_image(payload)

            self.logger.info(f"QR code generated for room {room.get('number')}")
            return {
                'success': True,
                'qr_data': payload,
                'image_png': self._to_png(img),
                'image_size': img.size,
                'filename': f"{payload}.png",
            }

        except (KeyError, ValueError) as e:
            self.logger.error(f"Room QR code generation failed: {str(e)}")
            return {'success': False, 'error': str(e)}

    def generate_teacher_badge(self, teacher: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Generate a teacher ID badge: the QR code with name, id and department
        printed underneath.

        Args:
            teacher: Teacher record with 'id', 'name' and 'department'

        Returns:
            Dict[str, Any]: Result with PNG bytes and filename
        """
        try:
            identity = ScannedIdentity.from_dict(teacher)
            if not identity.id or not identity.name:
                raise ValueError('Teacher id and name are required for a badge')

            payload = identity.badge_payload()
            img = self._add_caption(self._make_image(payload), [identity.name, identity.id, identity.department])

            self.logger.info(f"Badge generated for teacher {identity.id}")
            return {
                'success': True,
                'qr_data': payload,
                'image_png': self._to_png(img),
                'image_size': img.size,
                'filename': f"badge_{identity.id}_{datetime.now().strftime('%Y%m%d')}.png",
            }

        except ValueError as e:
            self.logger.error(f"Teacher badge generation failed: {str(e)}")
            return {'success': False, 'error': str(e)}

    def _add_caption(self, qr_img: Image.Image, lines) -> Image.Image:
        original_size = qr_img.size
        new_img = Image.new('RGB', (original_size[0], original_size[1] + 80), 'white')
        new_img.paste(qr_img, (0, 0))

        draw = ImageDraw.Draw(new_img)
        font = ImageFont.load_default()

        text_y = original_size[1] + 8
        for line in lines:
            if not line:
                continue
            bbox = draw.textbbox((0, 0), line, font=font)
            width = bbox[2] - bbox[0]
            draw.text(((new_img.size[0] - width) // 2, text_y), line, fill='black', font=font)
            text_y += 22

        return new_img
