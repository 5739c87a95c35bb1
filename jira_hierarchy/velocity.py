"""
Per-developer sprint velocity metrics.

For every (assignee, sprint) pair the calculator reports the points the
developer started the sprint with, the points added after it began, the
points resolved before it ended and the average ticket size.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from .fields import CustomFieldMapping
from .hierarchy_builder import IssueHierarchy
from .models import Issue, ReportSelection, has_any_label
from .sprint_parser import get_sprint_records, parse_datetime, story_points

logger = logging.getLogger(__name__)

TEAM_ASSIGNEE = "Team"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Grace period after the sprint start before a newly added issue counts as added
ADDED_GRACE_PERIOD = timedelta(days=1)

SPRINT_CHANGE_FIELD = "sprint"


def _lists_sprint(value: Optional[str], sprint_name: str) -> bool:
    """
    Check whether a changelog sprint value names a sprint.

    The value is the whole sprint name or a comma separated list of names.
    Names may contain commas themselves, so a name matches a run of
    consecutive list members as well as the whole value.
    """
    if not value:
        return False
    if value.strip() == sprint_name.strip():
        return True

    members = [part.strip() for part in value.split(',')]
    wanted = [part.strip() for part in sprint_name.split(',')]
    size = len(wanted)
    return any(members[i:i + size] == wanted for i in range(len(members) - size + 1))


def is_added_mid_sprint(issue: Issue, sprint_name: str, sprint_start: datetime) -> bool:
    """
    Check whether an issue was moved into a sprint after it had started.

    An issue counts as added if its change history has an entry created more
    than one day after the sprint start that moved its sprint field to
    ``sprint_name``. Issues without a change history count as present from
    the start.

    Args:
        issue: Issue to inspect
        sprint_name: Name of the sprint
        sprint_start: Start of the sprint

    Returns:
        True if the issue was added mid-sprint
    """
    histories = issue.changelog
    if not histories:
        return False

    cutoff = sprint_start + ADDED_GRACE_PERIOD

    for entry in histories:
        created = parse_datetime(entry.get('created'))
        if created is None or created <= cutoff:
            continue

        for item in entry.get('items') or []:
            if (item.get('field') or '').lower() != SPRINT_CHANGE_FIELD:
                continue
            if (
                _lists_sprint(item.get('toString'), sprint_name)
                and not _lists_sprint(item.get('fromString'), sprint_name)
            ):
                return True

    return False


class VelocityCalculator:
    """Compute velocity rows from the stories of a hierarchy."""

    def __init__(self, hierarchy: IssueHierarchy, field_mapping: CustomFieldMapping):
        """
        Initialize calculator.

        Args:
            hierarchy: Built issue hierarchy
            field_mapping: Session custom field mapping
        """
        self.hierarchy = hierarchy
        self.field_mapping = field_mapping

        self.sprint_issues: Dict[str, List[Issue]] = {}
        self.sprint_starts: Dict[str, datetime] = {}
        self._index_sprints()

    def _index_sprints(self):
        """Group assigned stories by every sprint they passed through."""
        sprint_field = self.field_mapping.sprint

        for story in self.hierarchy.stories():
            if story.is_placeholder or not story.assignee_name:
                continue

            for record in get_sprint_records(story, sprint_field):
                name = record.get('name')
                if not name:
                    continue

                issues = self.sprint_issues.setdefault(name, [])
                if story not in issues:
                    issues.append(story)

                if name not in self.sprint_starts:
                    start = parse_datetime(record.get('startDate'))
                    if start is not None:
                        self.sprint_starts[name] = start

        logger.debug(
            f"Indexed {len(self.sprint_issues)} sprint(s), "
            f"{len(self.sprint_starts)} with a start date"
        )

    def points(self, issue: Issue) -> float:
        return story_points(issue, self.field_mapping.story_points)

    def completion_time(self, issue: Issue, sprint_name: str) -> datetime:
        """
        End of the named sprint as recorded on the issue.

        Falls back to the epoch when the issue carries no usable end date,
        so the issue is not counted as completed in that sprint.
        """
        end = None
        for record in get_sprint_records(issue, self.field_mapping.sprint):
            if record.get('name') == sprint_name:
                parsed = parse_datetime(record.get('endDate'))
                if parsed is not None:
                    end = parsed
        return end or EPOCH

    def is_completed_in_sprint(self, issue: Issue, sprint_name: str) -> bool:
        resolved = parse_datetime(issue.resolution_date)
        return resolved is not None and resolved < self.completion_time(issue, sprint_name)

    def assignees(self, selection: Optional[ReportSelection] = None) -> List[str]:
        """Sorted display names of the assignees of label-matching sprint issues."""
        labels = selection.labels if selection else set()
        names = {
            issue.assignee_name
            for issues in self.sprint_issues.values()
            for issue in issues
            if has_any_label(issue, labels)
        }
        return sorted(name for name in names if name)

    def sprints(self, selection: Optional[ReportSelection] = None) -> List[str]:
        """Sprint names with a known start date, oldest first."""
        names = [name for name in self.sprint_issues if name in self.sprint_starts]
        if selection and selection.sprints:
            names = [name for name in names if name in selection.sprints]
        return sorted(names, key=lambda name: (self.sprint_starts[name], name))

    def filtered_issues(
        self,
        assignee: str,
        sprint_name: str,
        selection: Optional[ReportSelection] = None
    ) -> List[Issue]:
        labels = selection.labels if selection else set()
        return [
            issue for issue in self.sprint_issues.get(sprint_name, [])
            if issue.assignee_name == assignee and has_any_label(issue, labels)
        ]

    def metrics(self, issues: List[Issue], sprint_name: str) -> Dict:
        """
        Velocity numbers for one set of issues in one sprint.

        Args:
            issues: Issues of one developer in the sprint
            sprint_name: Name of the sprint

        Returns:
            Dictionary with the metric values
        """
        start = self.sprint_starts[sprint_name]

        total = sum(self.points(issue) for issue in issues)
        commitment = sum(
            self.points(issue) for issue in issues
            if not is_added_mid_sprint(issue, sprint_name, start)
        )
        completed = sum(
            self.points(issue) for issue in issues
            if self.is_completed_in_sprint(issue, sprint_name)
        )
        average = total / len(issues) if issues else 0.0

        return {
            'issue_count': len(issues),
            'starting_commitment': commitment,
            'points_added': total - commitment,
            'points_completed': completed,
            'average_ticket_size': average,
            'delta': completed - commitment,
        }

    def compute(self, selection: Optional[ReportSelection] = None) -> List[Dict]:
        """
        Compute velocity rows for every developer and sprint.

        Only pairs with at least one matching issue produce a row. Rows are
        ordered by assignee, then by sprint start.

        Args:
            selection: Active label and sprint filters

        Returns:
            List of row dictionaries
        """
        sprints = self.sprints(selection)
        rows = []

        for assignee in self.assignees(selection):
            for sprint_name in sprints:
                issues = self.filtered_issues(assignee, sprint_name, selection)
                if not issues:
                    continue

                row = {
                    'assignee': assignee,
                    'sprint': sprint_name,
                    'start_date': self.sprint_starts[sprint_name],
                }
                row.update(self.metrics(issues, sprint_name))
                rows.append(row)

        logger.info(f"✓ Computed {len(rows)} velocity row(s) for {len(sprints)} sprint(s)")
        return rows


def team_rollup(rows: List[Dict]) -> List[Dict]:
    """
    Aggregate developer rows into one team row per sprint.

    Point columns are summed; the average ticket size is weighted by the
    number of issues each developer contributed.

    Args:
        rows: Rows produced by ``VelocityCalculator.compute``

    Returns:
        Team rows ordered by sprint start
    """
    team: Dict[str, Dict] = {}

    for row in rows:
        total = team.setdefault(row['sprint'], {
            'assignee': TEAM_ASSIGNEE,
            'sprint': row['sprint'],
            'start_date': row['start_date'],
            'issue_count': 0,
            'starting_commitment': 0.0,
            'points_added': 0.0,
            'points_completed': 0.0,
            'average_ticket_size': 0.0,
            'delta': 0.0,
            '_points': 0.0,
        })
        total['issue_count'] += row['issue_count']
        total['starting_commitment'] += row['starting_commitment']
        total['points_added'] += row['points_added']
        total['points_completed'] += row['points_completed']
        total['delta'] += row['delta']
        total['_points'] += row['average_ticket_size'] * row['issue_count']

    result = []
    for total in sorted(team.values(), key=lambda t: (t['start_date'], t['sprint'])):
        points = total.pop('_points')
        if total['issue_count']:
            total['average_ticket_size'] = points / total['issue_count']
        result.append(total)

    return result
