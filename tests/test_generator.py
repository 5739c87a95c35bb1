"""
Tests for the main ReportGenerator orchestrator.
"""

import pytest
from unittest.mock import Mock, patch

from jira_hierarchy.generator import ReportGenerator
from jira_hierarchy.jira_client import JiraQueryError
from jira_hierarchy.models import ReportSelection, UNASSIGNED_EPIC_KEY

from conftest import FIELD_IDS, make_issue, sprint_blob


@pytest.fixture
def mock_client():
    """Patch the Jira client used by the generator."""
    with patch('jira_hierarchy.generator.JiraClient') as mock_client_class:
        client = Mock()
        client.get_custom_field_mapping.return_value = dict(FIELD_IDS)
        client.get_initiatives.return_value = [
            make_issue('INIT-1', issue_type='Initiative', summary='Land on the moon'),
        ]
        client.get_initiative_children.return_value = [
            make_issue('APL-1', issue_type='Epic'),
            make_issue('APL-10', epic_link='APL-1', status='Done', assignee='Ada', points=3,
                       sprints=[sprint_blob('Sprint 1')], labels=['urgent'],
                       resolution_date='2024-01-10T12:00:00.000+0000'),
            make_issue('APL-11', epic_link='APL-1', assignee='Ada', points=2,
                       sprints=[sprint_blob('Sprint 1')]),
        ]
        mock_client_class.return_value = client
        yield client


@pytest.fixture
def generator(mock_client):
    """Create a generator with the patched client."""
    return ReportGenerator(
        jira_url='https://jira.example.com',
        username='ada',
        token='secret',
        max_workers=2
    )


def test_generator_initialization(generator, mock_client):
    """Test that the generator wires one field mapping into the builder."""
    assert generator.client is mock_client
    assert generator.builder.field_mapping is generator.field_mapping
    assert generator.hierarchy.is_empty
    assert not generator.field_mapping.loaded


def test_load_with_initiatives(generator, mock_client):
    """Test the tiered load workflow and its statistics."""
    stats = generator.load(['Apollo'], filter_clause=' AND (labels in ("urgent"))')

    assert stats['success'] is True
    assert stats['initiative_count'] == 1
    assert stats['epic_count'] == 1
    assert stats['story_count'] == 2
    assert stats['execution_time'] >= 0

    mock_client.get_custom_field_mapping.assert_called_once_with('Apollo')
    mock_client.get_initiatives.assert_called_once()
    assert mock_client.get_initiative_children.call_args[1]['filter_clause'] == ' AND (labels in ("urgent"))'


def test_load_flat(generator, mock_client):
    """Test the flat load with the generated project query."""
    mock_client.search_issues.return_value = [make_issue('APL-10'), make_issue('APL-11')]

    stats = generator.load(['Gemini', 'Apollo'], include_initiatives=False)

    assert stats['initiative_count'] == 1
    assert stats['story_count'] == 2
    assert mock_client.search_issues.call_args[0][0] == 'project in ("Apollo", "Gemini")'
    initiative_epics, _ = generator.hierarchy.as_keys()
    assert initiative_epics == {UNASSIGNED_EPIC_KEY: [UNASSIGNED_EPIC_KEY]}
    mock_client.get_initiatives.assert_not_called()


def test_load_flat_escapes_project_names(generator, mock_client):
    """Test that quotes in project names cannot break the flat query."""
    mock_client.search_issues.return_value = [make_issue('APL-10')]

    generator.load(['Team "A"'], include_initiatives=False, filter_clause=' AND (labels IS EMPTY)')

    assert mock_client.search_issues.call_args[0][0] == 'project in ("Team \\"A\\"") AND (labels IS EMPTY)'


def test_load_failure_reports_unsuccessful(generator, mock_client, caplog):
    """Test that an empty load is reported as unsuccessful."""
    mock_client.get_initiatives.side_effect = JiraQueryError('503 Service Unavailable')

    stats = generator.load(['Apollo'])

    assert stats['success'] is False
    assert stats['story_count'] == 0
    assert 'nothing to report' in caplog.text


def test_generate(generator):
    """Test that one selection drives every analysis."""
    generator.load(['Apollo'])

    result = generator.generate()

    assert [row.issue.key for row in result['projection'].rows] == ['INIT-1', 'APL-1', 'APL-11', 'APL-10']
    assert len(result['velocity']) == 1
    assert result['velocity'][0]['assignee'] == 'Ada'
    assert result['velocity'][0]['points_completed'] == 3
    assert result['team'][0]['starting_commitment'] == 5
    assert result['completion'][0]['percent_complete'] == 0.5


def test_generate_with_selection(generator):
    """Test that the label selection narrows projection and velocity."""
    generator.load(['Apollo'])

    result = generator.generate(ReportSelection(labels=['urgent']))

    story_rows = [row for row in result['projection'].rows if not row.is_header]
    assert [row.issue.key for row in story_rows] == ['APL-10']
    assert result['velocity'][0]['issue_count'] == 1
    # Completion is never narrowed by labels
    assert result['completion'][0]['issue_count'] == 2


def test_completion_summary(generator):
    """Test the nested completion summary."""
    generator.load(['Apollo'])

    summary = generator.completion_summary()

    assert summary == [{
        'key': 'INIT-1',
        'summary': 'Land on the moon',
        'status': 'To Do',
        'issue_count': 2,
        'percent_complete': 0.5,
        'epics': [{
            'key': 'APL-1',
            'summary': 'Summary of APL-1',
            'status': 'To Do',
            'issue_count': 2,
            'percent_complete': 0.5,
        }],
    }]
    assert generator.completion_summary(ReportSelection(initiatives=['INIT-2'])) == []
    assert generator.completion_summary(ReportSelection(epics=['APL-9']))[0]['epics'] == []


def test_close(generator, mock_client):
    """Test that closing the generator closes the client session."""
    generator.close()

    mock_client.close.assert_called_once()
