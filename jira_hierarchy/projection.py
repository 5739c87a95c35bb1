"""
Flatten the hierarchy into ordered report rows with outline groups.
"""

import logging
from functools import cmp_to_key
from typing import Any, Dict, List, Optional

from .completion import EPIC_ROLE, INITIATIVE_ROLE, CompletionAggregator
from .fields import CustomFieldMapping
from .hierarchy_builder import IssueHierarchy
from .models import Issue, ReportSelection, has_any_label, is_complete
from .sprint_parser import current_sprint, story_points

logger = logging.getLogger(__name__)

STORY_ROLE = 'story'
PROJECT_GROUP = 'project'

GROUP_LEVELS = {INITIATIVE_ROLE: 1, EPIC_ROLE: 2, PROJECT_GROUP: 3}


def compare_stories(first: Issue, second: Issue) -> int:
    """
    Order stories by project name, then incomplete before complete.

    Stories with the same project and the same completion state compare
    equal, so a stable sort keeps their source order.
    """
    first_project = first.project_name or ""
    second_project = second.project_name or ""
    if first_project != second_project:
        return -1 if first_project < second_project else 1

    first_done = is_complete(first)
    second_done = is_complete(second)
    if first_done == second_done:
        return 0
    return 1 if first_done else -1


def sort_stories(stories: List[Issue]) -> List[Issue]:
    return sorted(stories, key=cmp_to_key(compare_stories))


def passes_sprint_filter(issue: Issue, sprints, sprint_field_id: Optional[str]) -> bool:
    """True if no sprints are selected, the issue has no sprint, or its current sprint is selected."""
    if not sprints:
        return True
    name = current_sprint(issue, sprint_field_id)
    return name is None or name in sprints


class RowGroup:
    """Inclusive range of row indexes that collapses under a header."""

    __slots__ = ('start', 'end', 'level', 'kind', 'key')

    def __init__(self, start: int, end: int, level: int, kind: str, key: str):
        self.start = start
        self.end = end
        self.level = level
        self.kind = kind
        self.key = key

    def __eq__(self, other):
        if not isinstance(other, RowGroup):
            return NotImplemented
        return (self.start, self.end, self.level, self.kind, self.key) == \
            (other.start, other.end, other.level, other.kind, other.key)

    def __repr__(self):
        return f"RowGroup({self.start}, {self.end}, level={self.level}, kind={self.kind!r}, key={self.key!r})"


class ProjectedRow:
    """One report row: an initiative header, an epic header or a story."""

    def __init__(
        self,
        role: str,
        issue: Issue,
        fields: Dict[str, Any],
        status_display: Any,
        presence: Dict[str, bool],
        initiative: Optional[str] = None,
        epic: Optional[str] = None
    ):
        self.role = role
        self.issue = issue
        self.fields = fields
        self.status_display = status_display
        self.presence = presence
        self.initiative = initiative
        self.epic = epic

    @property
    def is_header(self) -> bool:
        return self.role != STORY_ROLE

    def __repr__(self):
        return f"ProjectedRow({self.role!r}, {self.issue.key!r})"


class Projection:
    """Rows and groups for one report selection."""

    def __init__(self, rows: List[ProjectedRow], groups: List[RowGroup], presence_labels: List[str]):
        self.rows = rows
        self.groups = groups
        self.presence_labels = presence_labels

    def to_records(self) -> List[Dict[str, Any]]:
        """Flat dictionaries, one per row, for a tabular sink."""
        records = []
        for row in self.rows:
            record = {
                'role': row.role,
                'initiative': row.initiative,
                'epic': row.epic,
            }
            for name, value in row.fields.items():
                record[name] = ", ".join(value) if isinstance(value, list) else value
            record['status_display'] = row.status_display
            for label in self.presence_labels:
                record[f"label:{label}"] = row.presence[label]
            records.append(record)
        return records

    def __len__(self):
        return len(self.rows)


class ProjectionBuilder:
    """Walk the hierarchy in display order and emit rows for a selection."""

    def __init__(self, hierarchy: IssueHierarchy, field_mapping: CustomFieldMapping,
                 aggregator: Optional[CompletionAggregator] = None):
        """
        Initialize projection builder.

        Args:
            hierarchy: Built issue hierarchy
            field_mapping: Session custom field mapping
            aggregator: Completion aggregator over the same hierarchy
        """
        self.hierarchy = hierarchy
        self.field_mapping = field_mapping
        self.aggregator = aggregator or CompletionAggregator(hierarchy)

    def resolve_fields(self, issue: Issue) -> Dict[str, Any]:
        """Column values of an issue as shown in the report."""
        program = issue.get_field(self.field_mapping.program)
        if isinstance(program, dict):
            program = program.get('value') or program.get('name')

        return {
            'key': issue.key,
            'summary': issue.summary,
            'program': program,
            'project': issue.project_name,
            'sprint': current_sprint(issue, self.field_mapping.sprint),
            'story_points': story_points(issue, self.field_mapping.story_points),
            'status': issue.status_name,
            'issue_type': issue.issue_type,
            'assignee': issue.assignee_name,
            'reporter': issue.reporter_name,
            'priority': issue.priority_name,
            'fix_versions': issue.fix_versions,
            'labels': issue.labels,
            'components': issue.components,
            'due_date': issue.due_date,
            'description': issue.description,
        }

    def includes_story(self, issue: Issue, selection: ReportSelection) -> bool:
        return (
            has_any_label(issue, selection.labels)
            and passes_sprint_filter(issue, selection.sprints, self.field_mapping.sprint)
        )

    def _header(self, issue: Issue, role: str, selection: ReportSelection,
                initiative: Optional[str], epic: Optional[str]) -> ProjectedRow:
        return ProjectedRow(
            role=role,
            issue=issue,
            fields=self.resolve_fields(issue),
            status_display=self.aggregator.status_display(issue, role),
            presence={label: True for label in selection.presence_checks},
            initiative=initiative,
            epic=epic,
        )

    def _story(self, issue: Issue, selection: ReportSelection,
               initiative: str, epic: str) -> ProjectedRow:
        labels = set(issue.labels)
        return ProjectedRow(
            role=STORY_ROLE,
            issue=issue,
            fields=self.resolve_fields(issue),
            status_display=issue.status_name,
            presence={label: label in labels for label in selection.presence_checks},
            initiative=initiative,
            epic=epic,
        )

    def project(self, selection: Optional[ReportSelection] = None) -> Projection:
        """
        Build the rows and outline groups for a selection.

        Headers are always emitted for selected initiatives and epics; stories
        must pass the label and sprint filters. Within an epic, each run of
        stories from one project forms its own group.

        Args:
            selection: Active filters; everything is selected if omitted

        Returns:
            Projection of the hierarchy
        """
        selection = selection or ReportSelection()
        rows: List[ProjectedRow] = []
        groups: List[RowGroup] = []

        def close_group(start: int, kind: str, key: str):
            end = len(rows) - 1
            if end >= start:
                groups.append(RowGroup(start, end, GROUP_LEVELS[kind], kind, key))

        for initiative, epics in self.hierarchy.initiative_epics.items():
            if not selection.includes_initiative(initiative):
                continue

            rows.append(self._header(initiative, INITIATIVE_ROLE, selection, initiative.summary, None))
            initiative_start = len(rows)

            for epic in epics:
                if not selection.includes_epic(epic):
                    continue

                rows.append(self._header(epic, EPIC_ROLE, selection, initiative.summary, epic.summary))
                epic_start = len(rows)

                project = None
                project_start = None
                for story in sort_stories(self.hierarchy.stories_of(epic)):
                    if not self.includes_story(story, selection):
                        continue

                    if project_start is None:
                        project_start = len(rows)
                    elif story.project_name != project:
                        close_group(project_start, PROJECT_GROUP, project)
                        project_start = len(rows)
                    project = story.project_name

                    rows.append(self._story(story, selection, initiative.summary, epic.summary))

                if project_start is not None:
                    close_group(project_start, PROJECT_GROUP, project)
                close_group(epic_start, EPIC_ROLE, epic.key)

            close_group(initiative_start, INITIATIVE_ROLE, initiative.key)

        logger.debug(f"Projected {len(rows)} row(s) in {len(groups)} group(s)")
        return Projection(rows, groups, list(selection.presence_checks))
