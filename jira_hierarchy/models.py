"""
Issue record and report selection models for the Jira hierarchy.
"""

from typing import Any, Dict, Iterable, List, Optional

# Human readable names of the custom fields the reports depend on
STORY_POINTS_FIELD = "Story Points"
PROGRAM_FIELD = "Program / Project"
SPRINT_FIELD = "Sprint"
EPIC_LINK_FIELD = "Epic Link"

CUSTOM_FIELD_NAMES = [STORY_POINTS_FIELD, PROGRAM_FIELD, SPRINT_FIELD, EPIC_LINK_FIELD]

# Sentinel shared with fixtures and sinks
UNASSIGNED_EPIC_KEY = "Unassigned Epic"
UNASSIGNED_MARKER = "Unassigned"

COMPLETION_STATUSES = {"Done", "Resolved"}
_COMPLETION_STATUSES_LOWER = {status.lower() for status in COMPLETION_STATUSES}

ISSUE_KIND = 'issue'
PLACEHOLDER_KIND = 'placeholder'


class Issue:
    """
    A Jira issue as returned by a search query.

    Real issues wrap the raw JSON record. Placeholders stand in for a
    missing initiative or epic; every accessor answers them from a fixed
    value instead of the record.
    """

    __slots__ = ('kind', '_key', '_raw')

    def __init__(self, raw: Dict[str, Any], kind: str = ISSUE_KIND, key: Optional[str] = None):
        self.kind = kind
        self._raw = raw or {}
        self._key = key if key is not None else self._raw.get('key')

    @classmethod
    def placeholder(cls, key: str = UNASSIGNED_EPIC_KEY) -> 'Issue':
        """Create a synthetic issue used to group tickets without a parent."""
        return cls({}, kind=PLACEHOLDER_KIND, key=key)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> List['Issue']:
        return [cls(record) for record in records]

    @property
    def is_placeholder(self) -> bool:
        return self.kind == PLACEHOLDER_KIND

    @property
    def key(self) -> str:
        return self._key

    @property
    def raw(self) -> Dict[str, Any]:
        return self._raw

    @property
    def fields(self) -> Dict[str, Any]:
        return self._raw.get('fields') or {}

    def get_field(self, field_id: Optional[str]) -> Any:
        """
        Look up a field by its tracker identifier.

        Args:
            field_id: Field identifier such as ``customfield_10002``

        Returns:
            Raw field value, or None if the field is absent
        """
        if self.is_placeholder:
            return UNASSIGNED_MARKER
        if not field_id:
            return None
        return self.fields.get(field_id)

    def _named(self, field: str, attribute: str = 'name') -> Optional[str]:
        if self.is_placeholder:
            return UNASSIGNED_MARKER
        value = self.fields.get(field)
        if isinstance(value, dict):
            return value.get(attribute)
        return value

    @property
    def summary(self) -> Optional[str]:
        if self.is_placeholder:
            return self._key
        return self.fields.get('summary')

    @property
    def project_name(self) -> Optional[str]:
        return self._named('project')

    @property
    def status_name(self) -> Optional[str]:
        return self._named('status')

    @property
    def issue_type(self) -> Optional[str]:
        return self._named('issuetype')

    @property
    def priority_name(self) -> Optional[str]:
        return self._named('priority')

    @property
    def assignee_name(self) -> Optional[str]:
        """Display name of the assignee."""
        if self.is_placeholder:
            return None
        assignee = self.fields.get('assignee')
        if not assignee:
            return None
        return assignee.get('displayName') or assignee.get('name')

    @property
    def reporter_name(self) -> Optional[str]:
        if self.is_placeholder:
            return None
        reporter = self.fields.get('reporter')
        if not reporter:
            return None
        return reporter.get('name') or reporter.get('displayName')

    @property
    def labels(self) -> List[str]:
        if self.is_placeholder:
            return []
        return list(self.fields.get('labels') or [])

    @property
    def components(self) -> List[str]:
        if self.is_placeholder:
            return []
        return [c.get('name') for c in self.fields.get('components') or [] if c.get('name')]

    @property
    def fix_versions(self) -> List[str]:
        if self.is_placeholder:
            return []
        return [v.get('name') for v in self.fields.get('fixVersions') or [] if v.get('name')]

    @property
    def due_date(self) -> Optional[str]:
        if self.is_placeholder:
            return None
        return self.fields.get('duedate')

    @property
    def description(self) -> Optional[str]:
        if self.is_placeholder:
            return None
        return self.fields.get('description')

    @property
    def resolution_date(self) -> Optional[str]:
        if self.is_placeholder:
            return None
        return self.fields.get('resolutiondate')

    @property
    def changelog(self) -> Optional[List[Dict[str, Any]]]:
        """History entries, or None if the changelog was not expanded."""
        if self.is_placeholder:
            return None
        changelog = self._raw.get('changelog')
        if changelog is None:
            return None
        return changelog.get('histories') or []

    def __eq__(self, other):
        if not isinstance(other, Issue):
            return NotImplemented
        return self.kind == other.kind and self._key == other._key

    def __hash__(self):
        return hash((self.kind, self._key))

    def __repr__(self):
        if self.is_placeholder:
            return f"Issue.placeholder({self._key!r})"
        return f"Issue({self._key!r})"


def is_complete(issue: Issue) -> bool:
    """Check whether an issue's status is in the completion vocabulary."""
    status = issue.status_name
    return bool(status) and status.lower() in _COMPLETION_STATUSES_LOWER


def has_any_label(issue: Issue, labels: Iterable[str]) -> bool:
    """True if no labels are selected or the issue carries one of them."""
    labels = set(labels)
    return not labels or any(label in labels for label in issue.labels)


class ReportSelection:
    """Active filters for one report request. Empty collections select everything."""

    def __init__(
        self,
        initiatives: Optional[Iterable[str]] = None,
        epics: Optional[Iterable[str]] = None,
        sprints: Optional[Iterable[str]] = None,
        labels: Optional[Iterable[str]] = None,
        presence_checks: Optional[Iterable[str]] = None,
    ):
        """
        Initialize selection.

        Args:
            initiatives: Keys of initiatives to include
            epics: Keys of epics to include
            sprints: Sprint names an issue's current sprint must be in
            labels: Labels of which an issue must carry at least one
            presence_checks: Labels to report a presence column for
        """
        self.initiatives = set(initiatives or [])
        self.epics = set(epics or [])
        self.sprints = set(sprints or [])
        self.labels = set(labels or [])
        self.presence_checks = list(presence_checks or [])

    def includes_initiative(self, issue: Issue) -> bool:
        return not self.initiatives or issue.key in self.initiatives

    def includes_epic(self, issue: Issue) -> bool:
        return not self.epics or issue.key in self.epics

    def __repr__(self):
        return (
            f"ReportSelection(initiatives={sorted(self.initiatives)}, epics={sorted(self.epics)}, "
            f"sprints={sorted(self.sprints)}, labels={sorted(self.labels)}, "
            f"presence_checks={self.presence_checks})"
        )
