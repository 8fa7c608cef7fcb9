from datetime import datetime, timedelta, timezone

import pytest

from ai_todo.models import ManualTaskIn, TaskRecord


def _now():
    return datetime(2026, 10, 14, 10, 0, tzinfo=timezone.utc)


def test_task_record_requires_title():
    with pytest.raises(Exception):
        TaskRecord(title="", source="ai", group_key="g", created_at=_now(), updated_at=_now())
    with pytest.raises(Exception):
        TaskRecord(title="   ", source="ai", group_key="g", created_at=_now(), updated_at=_now())


def test_task_record_rejects_unknown_source():
    with pytest.raises(Exception):
        TaskRecord(title="X", source="robot", group_key="g", created_at=_now(), updated_at=_now())


def test_task_record_requires_group_key():
    with pytest.raises(Exception):
        TaskRecord(title="X", source="ai", group_key="", created_at=_now(), updated_at=_now())


def test_timestamps_are_normalised_to_utc():
    local = datetime(2026, 10, 14, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    t = TaskRecord(
        title="X", source="manual", group_key="g",
        due_instant=local, created_at=local, updated_at=datetime(2026, 10, 14, 10, 0),
    )
    assert t.due_instant == _now()
    assert t.due_instant.tzinfo == timezone.utc
    assert t.updated_at == _now()


def test_to_response_shape():
    t = TaskRecord(id="abc", title="X", source="ai", group_key="g", created_at=_now(), updated_at=_now())
    body = t.to_response()
    assert body["id"] == "abc"
    assert "id" not in body["data"]
    assert body["data"]["source"] == "ai"
    assert body["data"]["due_instant"] is None
    assert body["data"]["participants"] == []


def test_manual_input_participants():
    assert ManualTaskIn(title="X", participants="Ann, Bob ,").participants == ["Ann", "Bob"]
    assert ManualTaskIn(title="X", participants=[" Ann", ""]).participants == ["Ann"]
    assert ManualTaskIn(title="X", due="  ").due is None
    with pytest.raises(Exception):
        ManualTaskIn(title="  ")
