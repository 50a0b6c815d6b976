"""Tests for the usage collection store."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from labtrack.modules.checkin_manager import ACTION_CHECK_IN, ACTION_CHECK_OUT, CheckInManager
from labtrack.modules.database_manager import DatabaseManager
from labtrack.modules.qr_generator import ScannedIdentity
from labtrack.modules.session_store import (
    DuplicateOpenEntryError, SessionStore, UsageEntry, format_timestamp, parse_timestamp,
)

from conftest import make_entry


class TestUsageEntry:
    def test_open_entry_omits_end_time(self):
        data = make_entry().to_dict()
        assert 'endTime' not in data
        assert data['teacherId'] == 'T-1001'
        assert data['startTime'] == '2025-03-10T09:00:00'

    def test_room_label(self):
        assert make_entry(building='PSB', room='204').room_label == 'PSB-204'

    def test_parse_utc_timestamp(self):
        """'Z' timestamps written by browsers parse to naive local time."""
        parsed = parse_timestamp('2025-03-10T09:00:00.000Z')
        assert parsed.tzinfo is None

    def test_aware_timestamp_round_trip(self):
        """Aware datetimes format and parse to the same naive local time."""
        aware = datetime(2025, 3, 10, 9, 0, tzinfo=timezone(timedelta(hours=8)))
        expected = aware.astimezone().replace(tzinfo=None)

        assert parse_timestamp(format_timestamp(aware)) == expected
        assert parse_timestamp(aware) == expected

    def test_aware_entry_round_trip(self):
        start = datetime(2025, 3, 10, 1, 0, tzinfo=timezone.utc)
        entry = UsageEntry.from_dict(make_entry(start=start).to_dict())
        assert entry.start_time == start.astimezone().replace(tzinfo=None)

    def test_from_dict_defaults(self):
        entry = UsageEntry.from_dict({
            'teacherId': 'T-1', 'teacherName': 'A', 'buildingNumber': 'IS',
            'roomNumber': '1', 'startTime': '2025-03-10T09:00:00', 'numStudents': 3,
        })
        assert entry.is_open
        assert entry.equipment == []
        assert entry.purpose == ''


class TestSessionStore:
    def test_empty_when_absent(self, store):
        assert store.load() == []

    def test_round_trip(self, store, db_manager):
        entries = [
            make_entry(equipment=['Microscope', 'Centrifuge']),
            make_entry(teacher_id='T-1002', start=datetime(2025, 3, 11, 13, 30),
                       end=datetime(2025, 3, 11, 15, 0), purpose='Meeting'),
        ]
        store.save(entries)

        reloaded = SessionStore(db_manager).load()
        assert reloaded == entries

    def test_unparseable_collection_reads_empty(self, db_manager):
        db_manager.write_raw('usageEntries', '{not json')
        assert SessionStore(db_manager).load() == []

    def test_non_list_collection_reads_empty(self, db_manager):
        db_manager.write_collection('usageEntries', {'entries': []})
        assert SessionStore(db_manager).load() == []

    def test_load_returns_copy(self, store):
        store.save([make_entry()])
        loaded = store.load()
        loaded[0].purpose = 'changed'
        assert store.load()[0].purpose == 'Lab practical'

    def test_add_entry_persists(self, store, db_manager):
        index = store.add_entry(make_entry())
        assert index == 0
        assert len(db_manager.read_collection('usageEntries')) == 1

    def test_second_open_entry_for_triple_rejected(self, store):
        store.add_entry(make_entry())
        with pytest.raises(DuplicateOpenEntryError):
            store.add_entry(make_entry(start=datetime(2025, 3, 10, 10, 0)))

    def test_open_entry_for_closed_triple_allowed(self, store):
        store.add_entry(make_entry(end=datetime(2025, 3, 10, 11, 0)))
        assert store.add_entry(make_entry(start=datetime(2025, 3, 10, 12, 0))) == 1

    def test_find_open_entry(self, store):
        store.save([
            make_entry(end=datetime(2025, 3, 10, 11, 0)),
            make_entry(start=datetime(2025, 3, 10, 12, 0)),
        ])
        index, entry = store.find_open_entry('T-1001', 'IS', '101')
        assert index == 1
        assert entry.is_open
        assert store.find_open_entry('T-1001', 'IS', '102') is None

    def test_update_out_of_range(self, store):
        with pytest.raises(IndexError):
            store.update_entry(0, make_entry())

    def test_delete_entry(self, store):
        store.save([make_entry(), make_entry(teacher_id='T-1002')])
        removed = store.delete_entry(0)
        assert removed.teacher_id == 'T-1001'
        assert store.count() == 1
        assert store.delete_entry(5) is None


class TestSharedDatabase:
    """Two workers, each with its own store and connection, on one database file."""

    @pytest.fixture
    def workers(self, tmp_path):
        path = str(tmp_path / 'shared.db')
        managers = [DatabaseManager(path), DatabaseManager(path)]
        yield [SessionStore(manager) for manager in managers]
        for manager in managers:
            manager.close_all_connections()

    def test_load_sees_other_workers_writes(self, workers):
        store_a, store_b = workers
        assert store_a.load() == []

        store_b.add_entry(make_entry())

        assert len(store_a.load()) == 1

    def test_check_out_after_other_worker_checked_in(self, workers):
        store_a, store_b = workers
        buildings = {'IS': 'IS Building'}
        worker_a = CheckInManager(store_a, buildings)
        worker_b = CheckInManager(store_b, buildings)
        teacher = ScannedIdentity(id='T-1001', name='Dr. Smith', department='Chemistry')
        form = {'buildingNumber': 'IS', 'roomNumber': '101'}
        start = datetime(2025, 3, 10, 9, 0)

        store_a.load()
        first = worker_b.process_submission(teacher, form, now=start)
        second = worker_a.process_submission(teacher, form, now=start + timedelta(hours=1))

        assert first['action'] == ACTION_CHECK_IN
        assert second['action'] == ACTION_CHECK_OUT
        persisted = store_b.load()
        assert len(persisted) == 1
        assert persisted[0].end_time == start + timedelta(hours=1)

    def test_stale_store_does_not_drop_entries(self, workers):
        store_a, store_b = workers
        store_a.add_entry(make_entry())
        store_b.add_entry(make_entry(teacher_id='T-1002'))
        store_a.add_entry(make_entry(teacher_id='T-1003'))

        assert [e.teacher_id for e in store_b.load()] == ['T-1001', 'T-1002', 'T-1003']

    def test_other_thread_reads_same_database(self, db_manager):
        store = SessionStore(db_manager)
        store.add_entry(make_entry())
        seen = []

        def read():
            seen.append(SessionStore(db_manager).count())
            db_manager.close_all_connections()

        worker = threading.Thread(target=read)
        worker.start()
        worker.join()

        assert seen == [1]

    def test_version_increments_on_write(self, db_manager):
        assert db_manager.get_collection_version('usageEntries') is None
        assert db_manager.write_collection('usageEntries', []) == 1
        assert db_manager.write_collection('usageEntries', []) == 2
