"""
Sprint membership and timestamp parsing.

Jira Server returns the sprint field as a list of serialized objects such as::

    com.atlassian.greenhopper.service.sprint.Sprint@1a2b[id=7,rapidViewId=3,
    state=CLOSED,name=Sprint 7,startDate=2024-01-01T09:00:00.000Z,
    endDate=2024-01-14T17:00:00.000Z,completeDate=<null>,sequence=7]

Jira Cloud returns a list of JSON objects with the same property names.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import Issue

logger = logging.getLogger(__name__)

# Split on commas that start a new "key=" pair so sprint names may contain commas
_PAIR_SPLIT = re.compile(r",(?=\s*[A-Za-z_][A-Za-z0-9_]*=)")
_BLOB_BODY = re.compile(r"^[^\[]*\[(.*)\]\s*$", re.DOTALL)

_NULL_VALUES = {"", "null", "<null>"}

_DATETIME_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d",
]


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if value.lower() in _NULL_VALUES:
        return None
    return value


def parse_sprint(value: Any) -> Dict[str, Optional[str]]:
    """
    Parse one sprint entry into a property dictionary.

    Args:
        value: Serialized sprint string or sprint JSON object

    Returns:
        Dictionary of sprint properties; literal nulls become None.
        Empty if the entry could not be parsed.
    """
    if isinstance(value, dict):
        return {str(k): _clean(v) for k, v in value.items()}

    if not isinstance(value, str):
        logger.warning(f"Unsupported sprint value type: {type(value).__name__}")
        return {}

    match = _BLOB_BODY.match(value)
    body = match.group(1) if match else value

    properties: Dict[str, Optional[str]] = {}
    for pair in _PAIR_SPLIT.split(body):
        if '=' not in pair:
            continue
        name, _, raw = pair.partition('=')
        properties[name.strip()] = _clean(raw)

    if not properties:
        logger.warning(f"Failed to parse sprint properties: {value!r}")

    return properties


def get_sprint_records(issue: Issue, sprint_field_id: Optional[str]) -> List[Dict[str, Optional[str]]]:
    """
    Get the properties of every sprint an issue was part of, in membership order.

    Args:
        issue: Issue to inspect
        sprint_field_id: Custom field id of the sprint field

    Returns:
        List of sprint property dictionaries (unparseable entries are dropped)
    """
    if not sprint_field_id:
        return []

    value = issue.get_field(sprint_field_id)
    if not isinstance(value, list):
        return []

    records = []
    for entry in value:
        properties = parse_sprint(entry)
        if properties:
            records.append(properties)
        else:
            logger.warning(f"Skipping unparseable sprint entry of {issue.key}")
    return records


def current_sprint(issue: Issue, sprint_field_id: Optional[str]) -> Optional[str]:
    """
    Name of the sprint an issue is currently in.

    Only the last entry of the sprint field counts. If that entry cannot be
    parsed the issue has no current sprint; an earlier sprint never takes
    its place.
    """
    if not sprint_field_id:
        return None

    value = issue.get_field(sprint_field_id)
    if not isinstance(value, list) or not value:
        return None

    name = parse_sprint(value[-1]).get('name')
    if name is None:
        logger.warning(f"Current sprint of {issue.key} is unreadable; treating it as no sprint")
    return name


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Jira timestamp into a timezone-aware datetime.

    Naive values are taken as UTC. Unparseable values are logged and
    return None.
    """
    value = _clean(value)
    if value is None:
        return None

    if value.endswith('Z'):
        value = value[:-1] + '+0000'

    for fmt in _DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    logger.warning(f"Failed to parse time: {value!r}")
    return None


def story_points(issue: Issue, story_points_field_id: Optional[str]) -> float:
    """Story points of an issue; missing or non-numeric values count as 0."""
    value = issue.get_field(story_points_field_id) if story_points_field_id else None
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
