"""
Tests for completion rollup.
"""

import pytest

from jira_hierarchy.completion import EPIC_ROLE, INITIATIVE_ROLE, CompletionAggregator
from jira_hierarchy.hierarchy_builder import IssueHierarchy
from jira_hierarchy.models import Issue, UNASSIGNED_EPIC_KEY

from conftest import make_issue


def test_epic_rollup(sample_hierarchy):
    """Test an epic with 3 of 4 stories complete."""
    aggregator = CompletionAggregator(sample_hierarchy)
    epic = Issue(make_issue('APL-1'))

    assert aggregator.nested_count(epic) == 4
    assert aggregator.percent_complete(epic) == 0.75


def test_initiative_rollup(sample_hierarchy):
    """Test that an initiative counts the stories of all its epics."""
    aggregator = CompletionAggregator(sample_hierarchy)
    initiative = Issue(make_issue('INIT-1'))

    assert aggregator.nested_count(initiative) == 5
    assert aggregator.percent_complete(initiative) == pytest.approx(0.6)


def test_zero_nested_falls_back_to_status():
    """Test that a node without stories shows its own status."""
    epic = Issue(make_issue('APL-1', issue_type='Epic', status='Backlog'))
    aggregator = CompletionAggregator(IssueHierarchy(epic_stories={epic: []}))

    assert aggregator.nested_count(epic) == 0
    assert aggregator.percent_complete(epic) is None
    assert aggregator.status_display(epic) == 'Backlog'


def test_status_display_ratio(sample_hierarchy):
    """Test that nodes with stories show their ratio."""
    aggregator = CompletionAggregator(sample_hierarchy)

    assert aggregator.status_display(Issue(make_issue('APL-2'))) == 0.0


def test_ratio_bounds(sample_hierarchy):
    """Test that every ratio lies between 0 and 1."""
    aggregator = CompletionAggregator(sample_hierarchy)
    summary = aggregator.summary()

    ratios = list(summary['initiatives'].values()) + list(summary['epics'].values())
    assert ratios
    for ratio in ratios:
        assert 0 <= ratio <= 1


def test_initiative_stories_counted_once():
    """Test that a story filed under two epics of one initiative counts once."""
    initiative = Issue(make_issue('INIT-1'))
    epic1 = Issue(make_issue('APL-1'))
    epic2 = Issue(make_issue('APL-2'))
    story = Issue(make_issue('APL-10', status='Done'))
    other = Issue(make_issue('APL-11'))
    hierarchy = IssueHierarchy(
        initiative_epics={initiative: [epic1, epic2]},
        epic_stories={epic1: [story], epic2: [story, other]},
    )

    assert CompletionAggregator(hierarchy).percent_complete(initiative) == 0.5


def test_placeholder_roles():
    """Test that the shared placeholder key resolves by explicit role."""
    placeholder = Issue.placeholder(UNASSIGNED_EPIC_KEY)
    epic = Issue(make_issue('APL-1'))
    hierarchy = IssueHierarchy(
        initiative_epics={placeholder: [placeholder, epic]},
        epic_stories={
            placeholder: [Issue(make_issue('APL-10', status='Done'))],
            epic: [Issue(make_issue('APL-20')), Issue(make_issue('APL-21'))],
        },
    )
    aggregator = CompletionAggregator(hierarchy)

    assert aggregator.nested_count(placeholder, INITIATIVE_ROLE) == 3
    assert aggregator.nested_count(placeholder, EPIC_ROLE) == 1
    assert aggregator.percent_complete(placeholder, EPIC_ROLE) == 1.0
