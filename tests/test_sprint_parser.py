"""
Tests for sprint record and timestamp parsing.
"""

from datetime import datetime, timezone

import pytest

from jira_hierarchy.models import Issue
from jira_hierarchy.sprint_parser import (
    current_sprint,
    get_sprint_records,
    parse_datetime,
    parse_sprint,
    story_points,
)

from conftest import SPRINT_ID, STORY_POINTS_ID, make_issue, sprint_blob


def test_parse_server_blob():
    """Test parsing a serialized sprint."""
    record = parse_sprint(sprint_blob('Sprint 7', sprint_id=7))

    assert record['id'] == '7'
    assert record['name'] == 'Sprint 7'
    assert record['state'] == 'CLOSED'
    assert record['startDate'] == '2024-01-01T09:00:00.000Z'
    assert record['endDate'] == '2024-01-14T17:00:00.000Z'


def test_parse_blob_nulls_are_absent():
    """Test that literal null markers become None."""
    record = parse_sprint(sprint_blob('Sprint 8', start='<null>', end='null'))

    assert record['startDate'] is None
    assert record['endDate'] is None
    assert record['completeDate'] is None


def test_parse_blob_name_with_comma():
    """Test that commas inside values do not split the pair."""
    record = parse_sprint(sprint_blob('Team A, Sprint 3'))

    assert record['name'] == 'Team A, Sprint 3'
    assert record['state'] == 'CLOSED'


def test_parse_cloud_object():
    """Test parsing a sprint JSON object."""
    record = parse_sprint({'id': 9, 'name': 'Sprint 9', 'startDate': None, 'endDate': '2024-02-01T00:00:00.000Z'})

    assert record['id'] == '9'
    assert record['name'] == 'Sprint 9'
    assert record['startDate'] is None


def test_parse_garbage_is_logged(caplog):
    """Test that unparseable values yield an empty record."""
    assert parse_sprint('not a sprint') == {}
    assert parse_sprint(42) == {}
    assert 'sprint' in caplog.text.lower()


def test_get_sprint_records_in_membership_order():
    """Test that records follow the field order."""
    issue = Issue(make_issue('APL-1', sprints=[sprint_blob('Sprint 1'), 'broken', sprint_blob('Sprint 2')]))

    records = get_sprint_records(issue, SPRINT_ID)

    assert [r['name'] for r in records] == ['Sprint 1', 'Sprint 2']
    assert current_sprint(issue, SPRINT_ID) == 'Sprint 2'


def test_get_sprint_records_without_sprint():
    """Test issues without sprint membership."""
    issue = Issue(make_issue('APL-1'))

    assert get_sprint_records(issue, SPRINT_ID) == []
    assert get_sprint_records(issue, None) == []
    assert get_sprint_records(Issue.placeholder(), SPRINT_ID) == []
    assert current_sprint(issue, SPRINT_ID) is None
    assert current_sprint(issue, None) is None


def test_unreadable_last_sprint_means_no_current_sprint(caplog):
    """Test that a broken last entry does not fall back to an earlier sprint."""
    issue = Issue(make_issue('APL-7', sprints=[sprint_blob('Sprint 1'), 'broken']))

    assert current_sprint(issue, SPRINT_ID) is None
    assert [r['name'] for r in get_sprint_records(issue, SPRINT_ID)] == ['Sprint 1']
    assert 'APL-7' in caplog.text


@pytest.mark.parametrize('value,expected', [
    ('2024-01-01T09:00:00.000Z', datetime(2024, 1, 1, 9, tzinfo=timezone.utc)),
    ('2024-01-01T11:00:00.000+0200', datetime(2024, 1, 1, 9, tzinfo=timezone.utc)),
    ('2024-01-01T09:00:00', datetime(2024, 1, 1, 9, tzinfo=timezone.utc)),
    ('2024-01-01', datetime(2024, 1, 1, tzinfo=timezone.utc)),
])
def test_parse_datetime(value, expected):
    """Test supported timestamp formats."""
    assert parse_datetime(value) == expected


def test_parse_datetime_invalid(caplog):
    """Test that absent and invalid timestamps return None."""
    assert parse_datetime(None) is None
    assert parse_datetime('null') is None
    assert parse_datetime('yesterday') is None
    assert 'Failed to parse time' in caplog.text


@pytest.mark.parametrize('points,expected', [
    (3, 3.0),
    (2.5, 2.5),
    ('5', 5.0),
    (None, 0.0),
    ('null', 0.0),
    ('lots', 0.0),
])
def test_story_points(points, expected):
    """Test that missing or non-numeric points count as zero."""
    issue = Issue(make_issue('APL-1', points=points))

    assert story_points(issue, STORY_POINTS_ID) == expected


def test_story_points_of_placeholder():
    """Test that the placeholder marker counts as zero."""
    assert story_points(Issue.placeholder(), STORY_POINTS_ID) == 0.0
    assert story_points(Issue(make_issue('APL-1', points=3)), None) == 0.0
