import asyncio
import json
import logging

from moby_kanban.client.errors import ApiValidationError, NotFoundError, TransientError
from moby_kanban.client.notices import NoticeCenter, failure_message
from moby_kanban.observability.logging import JsonFormatter


def test_failure_messages_name_action_subject_and_reason():
    assert failure_message("move", "Fix login", TransientError("timeout")) == (
        'Couldn\'t move "Fix login": couldn\'t reach server'
    )
    assert failure_message("delete", "Docs", NotFoundError("gone", 404)).endswith("item no longer exists")
    assert failure_message("update", "a", ApiValidationError("title too long", 400)).endswith("title too long")


async def test_new_notice_replaces_current_and_keeps_its_own_timer():
    center = NoticeCenter(ttl=0.05)
    seen = []
    center.subscribe(seen.append)

    center.show("first", "move")
    await asyncio.sleep(0.03)
    second = center.show("second", "delete", "t1")
    await asyncio.sleep(0.03)
    # The first notice's deadline has passed; the second is still showing
    assert center.current is second

    await asyncio.sleep(0.05)
    assert center.current is None
    assert [n.message if n else None for n in seen] == ["first", "second", None]


async def test_dismiss_clears_immediately():
    center = NoticeCenter(ttl=10)
    center.show("stuck", "flag")
    center.dismiss()
    assert center.current is None


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("moby_kanban.sync", logging.WARNING, __file__, 1, "sync.rollback", None, None)
    record.category = "sync"
    record.entity_id = "t1"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["msg"] == "sync.rollback"
    assert (payload["category"], payload["entity_id"]) == ("sync", "t1")
    assert "lineno" not in payload
