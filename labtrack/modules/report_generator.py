"""
Report Generator Module - Lab Room Usage Tracker

This module derives everything the dashboards and exports show from a
snapshot of the usage session store. It keeps no state of its own: every call
reloads the store and recomputes.

Features:
- Usage aggregates (entries, students, rooms, teachers, averages)
- Group-by purpose, building and registered room
- Ad hoc filtering by room, purpose and inclusive date range
- Period filtering (all, day, week, month)
- CSV, PDF and Excel export
"""

import csv
import io
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from labtrack.modules.session_store import UsageEntry

CSV_COLUMNS = ['Date', 'Time', 'Room', 'Students', 'Purpose', 'Equipment']
PDF_COLUMNS = ['Room', 'Teacher', 'Start Time', 'End Time', 'Students', 'Purpose']
PERIODS = ('all', 'day', 'week', 'month')
UNSPECIFIED_PURPOSE = 'Unspecified'


def format_date(value: datetime) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def format_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = 'AM' if value.hour < 12 else 'PM'
    return f"{hour}:{value.minute:02d}:{value.second:02d} {suffix}"


def format_datetime(value: datetime) -> str:
    return f"{format_date(value)}, {format_time(value)}"


def parse_date(value: Any) -> Optional[date]:
    """Parse a YYYY-MM-DD filter value; blank means no bound."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()


def filter_entries(entries: Iterable[UsageEntry], room: Optional[str] = None,
                   purpose: Optional[str] = None, start_date: Any = None,
                   end_date: Any = None) -> List[UsageEntry]:
    """
    Keep the entries that satisfy every given filter.

    Args:
        room (str): Substring of the room label ("IS-101") or room number
        purpose (str): Case-insensitive substring of the purpose
        start_date: First day included (YYYY-MM-DD)
        end_date: Last day included, up to the end of that day

    Raises:
        ValueError: if a date is not in YYYY-MM-DD form
    """
    start = parse_date(start_date)
    end = parse_date(end_date)
    start_bound = datetime.combine(start, time.min) if start else None
    end_bound = datetime.combine(end, time.max) if end else None
    purpose_needle = purpose.lower() if purpose else None

    filtered = []
    for entry in entries:
        if room and room not in entry.room_label and room not in entry.room_number:
            continue
        if purpose_needle and purpose_needle not in entry.purpose.lower():
            continue
        if start_bound and entry.start_time < start_bound:
            continue
        if end_bound and entry.start_time > end_bound:
            continue
        filtered.append(entry)
    return filtered


def filter_by_period(entries: Iterable[UsageEntry], period: str = 'all',
                     today: Optional[datetime] = None) -> List[UsageEntry]:
    """
    Keep entries started today ('day'), within the last seven days ('week'),
    or in the current calendar month ('month'); 'all' keeps everything.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")

    today = today or datetime.now()
    entries = list(entries)

    if period == 'day':
        return [e for e in entries if e.start_time.date() == today.date()]
    if period == 'week':
        one_week_ago = today - timedelta(days=7)
        return [e for e in entries if e.start_time >= one_week_ago]
    if period == 'month':
        return [e for e in entries
                if e.start_time.month == today.month and e.start_time.year == today.year]
    return entries


def count_by(values: Iterable[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return counts


def summarize(entries: List[UsageEntry]) -> Dict[str, Any]:
    """
    Compute the usage aggregates for a list of entries.

    Returns:
        Dict[str, Any]: totals, averages and group-by counts
    """
    total_entries = len(entries)
    total_students = sum(e.num_students for e in entries)

    by_purpose = count_by(e.purpose or UNSPECIFIED_PURPOSE for e in entries)
    by_building = count_by(e.building_number for e in entries)

    return {
        'total_entries': total_entries,
        'total_students': total_students,
        'unique_rooms': len({e.room_label for e in entries}),
        'unique_teachers': len({e.teacher_id for e in entries}),
        'open_entries': sum(1 for e in entries if e.is_open),
        'avg_students_per_entry': round(total_students / total_entries, 1) if total_entries else 0,
        'by_purpose': [{'purpose': k, 'count': v} for k, v in by_purpose.items()],
        'by_building': [{'building': k, 'count': v} for k, v in by_building.items()],
    }


def room_usage(entries: List[UsageEntry], rooms) -> List[Dict[str, Any]]:
    """Entries and students per registered room, matched on room number."""
    usage = []
    for room in rooms:
        room_entries = [e for e in entries if e.room_number == room.number]
        usage.append({
            'room_id': room.id,
            'name': f"Room {room.number}",
            'entries': len(room_entries),
            'students': sum(e.num_students for e in room_entries),
        })
    return usage


class ReportGenerator:
    """
    Read-side views and exports over the usage session store.
    """

    def __init__(self, session_store, room_manager=None,
                 title: str = 'Laboratory Room Usage Report',
                 filename_prefix: str = 'lab-usage-report'):
        """
        Args:
            session_store: SessionStore with the usage entries
            room_manager: RoomManager for per-room usage, optional
            title (str): PDF title
            filename_prefix (str): Prefix of export filenames
        """
        self.store = session_store
        self.room_manager = room_manager
        self.title = title
        self.filename_prefix = filename_prefix
        self.logger = logging.getLogger(__name__)

    def admin_dashboard(self) -> Dict[str, Any]:
        entries = self.store.load()
        rooms = self.room_manager.get_all_rooms() if self.room_manager else []

        return {
            'statistics': summarize(entries),
            'registered_rooms': len(rooms),
            'room_usage': room_usage(entries, rooms),
        }

    def professor_dashboard(self, recent_limit: int = 3) -> Dict[str, Any]:
        entries = self.store.load()
        stats = summarize(entries)
        recent = list(reversed(entries[-recent_limit:])) if recent_limit > 0 else []

        return {
            'total_entries': stats['total_entries'],
            'rooms_used': stats['unique_rooms'],
            'total_students': stats['total_students'],
            'recent_entries': [e.to_dict() for e in recent],
        }

    def history(self) -> Dict[str, Any]:
        """
        All entries, newest first. Each row keeps its position in the store so
        it can be deleted.
        """
        entries = self.store.load()
        indexed = sorted(enumerate(entries), key=lambda pair: pair[1].start_time, reverse=True)
        stats = summarize(entries)

        return {
            'total_entries': stats['total_entries'],
            'total_students': stats['total_students'],
            'rooms_accessed': stats['unique_rooms'],
            'entries': [{'index': index, **entry.to_dict()} for index, entry in indexed],
        }

    def usage_report(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Filtered usage table with its summary.

        Raises:
            ValueError: on malformed date filters
        """
        entries = self.get_filtered_entries(filters)
        stats = summarize(entries)

        return {
            'filters_applied': {k: v for k, v in filters.items() if v},
            'statistics': {
                'total_entries': stats['total_entries'],
                'total_students': stats['total_students'],
                'unique_rooms': stats['unique_rooms'],
            },
            'entries': [e.to_dict() for e in entries],
        }

    def get_filtered_entries(self, filters: Dict[str, Any]) -> List[UsageEntry]:
        return filter_entries(
            self.store.load(),
            room=filters.get('room'),
            purpose=filters.get('purpose'),
            start_date=filters.get('start_date'),
            end_date=filters.get('end_date'),
        )

    def _filename(self, extension: str, period: Optional[str] = None,
                  today: Optional[datetime] = None) -> str:
        today = today or datetime.now()
        parts = [self.filename_prefix]
        if period:
            parts.append(period)
        parts.append(today.strftime('%Y-%m-%d'))
        return f"{'-'.join(parts)}.{extension}"

    def _csv_frame(self, entries: List[UsageEntry]) -> pd.DataFrame:
        rows = [[
            format_date(e.start_time),
            format_time(e.start_time),
            e.room_label,
            e.num_students,
            e.purpose,
            '; '.join(e.equipment),
        ] for e in entries]
        return pd.DataFrame(rows, columns=CSV_COLUMNS)

    def export_csv(self, entries: List[UsageEntry], today: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Render entries as CSV with every cell quoted.

        Returns:
            Dict[str, Any]: Export result with 'content' bytes and 'filename'
        """
        content = self._csv_frame(entries).to_csv(
            index=False, quoting=csv.QUOTE_ALL, lineterminator='\n'
        ).rstrip('\n')

        filename = self._filename('csv', today=today)
        self.logger.info(f"CSV export generated: {filename} ({len(entries)} rows)")
        return {
            'success': True,
            'filename': filename,
            'format': 'csv',
            'mimetype': 'text/csv',
            'content': content.encode('utf-8'),
        }

    def export_pdf(self, period: str = 'all', today: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Render the usage table for a period as a PDF document.

        Raises:
            ValueError: on an unknown period
        """
        today = today or datetime.now()
        entries = filter_by_period(self.store.load(), period, today)

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4)
        styles = getSampleStyleSheet()

        elements = [
            Paragraph(self.title, styles['Title']),
            Paragraph(f"Generated on: {format_datetime(today)}", styles['Normal']),
            Paragraph(f"Filter: {period.upper()}", styles['Normal']),
            Spacer(1, 16),
        ]

        table_data = [PDF_COLUMNS]
        for e in entries:
            table_data.append([
                e.room_label,
                e.teacher_name,
                format_datetime(e.start_time),
                format_time(e.end_time) if e.end_time else 'Active',
                str(e.num_students),
                e.purpose,
            ])

        data_table = Table(table_data, repeatRows=1)
        data_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
            ('GRID', (0, 0), (-1, -1), 1, colors.black)
        ]))
        elements.append(data_table)

        doc.build(elements)

        filename = self._filename('pdf', period=period, today=today)
        self.logger.info(f"PDF export generated: {filename} ({len(entries)} rows)")
        return {
            'success': True,
            'filename': filename,
            'format': 'pdf',
            'mimetype': 'application/pdf',
            'content': buffer.getvalue(),
            'row_count': len(entries),
        }

    def export_excel(self, entries: List[UsageEntry], today: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Render entries as an Excel workbook with a usage sheet and a summary sheet.
        """
        stats = summarize(entries)
        summary_rows = [
            ['Total Entries', stats['total_entries']],
            ['Total Students', stats['total_students']],
            ['Unique Rooms', stats['unique_rooms']],
            ['Unique Teachers', stats['unique_teachers']],
            ['Avg. Students/Entry', stats['avg_students_per_entry']],
        ]

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            self._csv_frame(entries).to_excel(writer, sheet_name='Usage', index=False)
            pd.DataFrame(summary_rows, columns=['Metric', 'Value']).to_excel(
                writer, sheet_name='Summary', index=False
            )
            if stats['by_purpose']:
                pd.DataFrame(stats['by_purpose']).to_excel(writer, sheet_name='By Purpose', index=False)

        filename = self._filename('xlsx', today=today)
        self.logger.info(f"Excel export generated: {filename} ({len(entries)} rows)")
        return {
            'success': True,
            'filename': filename,
            'format': 'excel',
            'mimetype': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            'content': buffer.getvalue(),
        }
