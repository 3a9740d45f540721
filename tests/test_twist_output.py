from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from twist_cli.client import Workspace
from twist_cli.dates import format_absolute_date, format_relative_date, parse_date
from twist_cli.output import (
    camelize,
    format_json,
    format_ndjson,
    format_paginated_json,
    format_paginated_ndjson,
    styled,
    to_output,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_camelize_nested() -> None:
    data = {"workspace_id": 1, "last_obj": {"obj_index": 2}, "user_ids": [{"user_id": 3}]}
    assert camelize(data) == {
        "workspaceId": 1,
        "lastObj": {"objIndex": 2},
        "userIds": [{"userId": 3}],
    }


def test_to_output_merges_extra_fields() -> None:
    workspace = Workspace.from_api({"id": 1, "name": "Acme", "default_channel": 5})
    assert to_output(workspace, url="https://twist.com/a/1") == {
        "id": 1,
        "name": "Acme",
        "defaultChannel": 5,
        "url": "https://twist.com/a/1",
    }


def test_format_json_essential_fields() -> None:
    items = [{"id": 1, "name": "Acme", "creator": 2, "plan": "free", "color": 3}]
    assert json.loads(format_json(items, "workspace")) == [
        {"id": 1, "name": "Acme", "creator": 2, "plan": "free"}
    ]
    assert json.loads(format_json(items, "workspace", full=True)) == items
    assert json.loads(format_json(items[0], "workspace"))["plan"] == "free"


def test_format_ndjson() -> None:
    items = [{"id": 1, "name": "a", "workspaceId": 9, "color": 1}, {"id": 2, "name": "b"}]
    lines = format_ndjson(items, "channel").splitlines()
    assert [json.loads(line) for line in lines] == [
        {"id": 1, "name": "a", "workspaceId": 9},
        {"id": 2, "name": "b"},
    ]


def test_paginated_formats() -> None:
    results = [{"type": "thread", "snippet": "x"}]
    assert json.loads(format_paginated_json(results, "c1")) == {
        "results": results,
        "nextCursor": "c1",
    }
    lines = format_paginated_ndjson(results, "c1").splitlines()
    assert json.loads(lines[-1]) == {"_meta": True, "nextCursor": "c1"}
    assert len(format_paginated_ndjson(results, None).splitlines()) == 1


def test_styled_escapes_markup() -> None:
    assert styled("[general]", "blue") == "[blue]\\[general][/blue]"


def test_format_relative_date() -> None:
    assert format_relative_date(None, now=NOW) == ""
    assert format_relative_date(NOW - timedelta(seconds=30), now=NOW) == "just now"
    assert format_relative_date(NOW - timedelta(minutes=1), now=NOW) == "1 minute ago"
    assert format_relative_date(NOW - timedelta(hours=5), now=NOW) == "5 hours ago"
    assert format_relative_date(NOW - timedelta(hours=30), now=NOW) == "yesterday"
    assert format_relative_date(NOW - timedelta(days=3), now=NOW) == "3 days ago"
    assert format_relative_date(NOW - timedelta(days=30), now=NOW) == "May 16"


def test_format_absolute_date() -> None:
    assert format_absolute_date(datetime(2024, 1, 2, tzinfo=timezone.utc), now=NOW) == "Jan 2"
    assert (
        format_absolute_date(datetime(2021, 12, 25, tzinfo=timezone.utc), now=NOW)
        == "Dec 25, 2021"
    )


def test_parse_date() -> None:
    assert parse_date("2024-01-01") == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_date("2024-01-01T10:00:00Z") == datetime(
        2024, 1, 1, 10, tzinfo=timezone.utc
    )
    assert parse_date("yesterday") is None
