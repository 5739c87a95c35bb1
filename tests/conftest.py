"""
Shared pytest fixtures for jira_hierarchy tests.
"""

import pytest

from jira_hierarchy.fields import CustomFieldMapping
from jira_hierarchy.hierarchy_builder import IssueHierarchy
from jira_hierarchy.models import Issue


STORY_POINTS_ID = 'customfield_10002'
SPRINT_ID = 'customfield_10004'
EPIC_LINK_ID = 'customfield_10008'
PROGRAM_ID = 'customfield_10100'

FIELD_IDS = {
    'Story Points': STORY_POINTS_ID,
    'Sprint': SPRINT_ID,
    'Epic Link': EPIC_LINK_ID,
    'Program / Project': PROGRAM_ID,
}


def sprint_blob(name, start='2024-01-01T09:00:00.000Z', end='2024-01-14T17:00:00.000Z', sprint_id=1):
    """Serialized sprint value as returned by Jira Server."""
    return (
        f"com.atlassian.greenhopper.service.sprint.Sprint@1f2e3d[id={sprint_id},rapidViewId=3,"
        f"state=CLOSED,name={name},startDate={start},endDate={end},"
        f"completeDate=<null>,sequence={sprint_id}]"
    )


def make_issue(
    key,
    project='Apollo',
    status='To Do',
    issue_type='Story',
    epic_link=None,
    assignee=None,
    labels=None,
    points=None,
    sprints=None,
    resolution_date=None,
    changelog=None,
    summary=None,
    program=None,
):
    """Raw Jira issue record with the fields the reports read."""
    fields = {
        'summary': summary or f"Summary of {key}",
        'project': {'key': project[:3].upper(), 'name': project},
        'status': {'name': status},
        'issuetype': {'name': issue_type},
        'labels': list(labels or []),
        'assignee': {'name': assignee.lower(), 'displayName': assignee} if assignee else None,
        'reporter': {'name': 'reporter', 'displayName': 'Reporter'},
        'priority': {'name': 'Medium'},
        'fixVersions': [{'name': '1.0'}],
        'components': [{'name': 'core'}],
        'duedate': None,
        'description': f"Description of {key}",
        'resolutiondate': resolution_date,
        STORY_POINTS_ID: points,
        EPIC_LINK_ID: epic_link,
        SPRINT_ID: sprints,
        PROGRAM_ID: {'value': program} if program else None,
    }
    record = {'key': key, 'fields': fields}
    if changelog is not None:
        record['changelog'] = {'histories': changelog}
    return record


def sprint_change(created, to_sprints, from_sprints=''):
    """Change history entry moving an issue between sprints."""
    return {
        'created': created,
        'items': [{'field': 'Sprint', 'fromString': from_sprints, 'toString': to_sprints}],
    }


@pytest.fixture
def field_mapping():
    """Preloaded custom field mapping."""
    return CustomFieldMapping(mapping=FIELD_IDS)


@pytest.fixture
def sample_hierarchy():
    """One initiative with two epics; the first has 4 stories across two projects."""
    initiative = Issue(make_issue('INIT-1', issue_type='Initiative', status='In Progress'))
    epic1 = Issue(make_issue('APL-1', issue_type='Epic', status='In Progress'))
    epic2 = Issue(make_issue('APL-2', issue_type='Epic', status='Backlog'))

    stories1 = [
        Issue(make_issue('GEM-1', project='Gemini', status='Done', epic_link='APL-1', labels=['urgent'])),
        Issue(make_issue('APL-10', status='Done', epic_link='APL-1', labels=['urgent', 'infra'])),
        Issue(make_issue('APL-11', status='In Progress', epic_link='APL-1', labels=['infra'])),
        Issue(make_issue('APL-12', status='Resolved', epic_link='APL-1')),
    ]
    stories2 = [
        Issue(make_issue('APL-20', status='To Do', epic_link='APL-2')),
    ]

    return IssueHierarchy(
        initiative_epics={initiative: [epic1, epic2]},
        epic_stories={epic1: stories1, epic2: stories2},
    )


# Markers for test categorization
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API-related tests")
    config.addinivalue_line("markers", "slow: Slow-running tests")
