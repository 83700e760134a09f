"""
Tests des messages interface ↔ worker de synchronisation.
"""

import pytest

from choiros.client.messages import AttendanceSyncedMessage, SyncAttendanceMessage, parse_message


def test_parse_sync_attendance():
    assert isinstance(parse_message({"type": "SYNC_ATTENDANCE"}), SyncAttendanceMessage)


def test_parse_attendance_synced():
    message = parse_message({"type": "ATTENDANCE_SYNCED", "recordId": 12})
    assert isinstance(message, AttendanceSyncedMessage)
    assert message.record_id == 12


@pytest.mark.parametrize(
    "data",
    [
        {"type": "SKIP_WAITING"},
        {"type": "ATTENDANCE_SYNCED"},
        {"recordId": 3},
        {},
    ],
)
def test_message_invalide(data):
    with pytest.raises(ValueError):
        parse_message(data)
