"""
Completion rollup over the issue hierarchy.
"""

import logging
from typing import Dict, List, Optional

from .hierarchy_builder import IssueHierarchy
from .models import Issue, is_complete

logger = logging.getLogger(__name__)

INITIATIVE_ROLE = 'initiative'
EPIC_ROLE = 'epic'


class CompletionAggregator:
    """Fraction of completed stories under initiatives and epics."""

    def __init__(self, hierarchy: IssueHierarchy):
        self.hierarchy = hierarchy

    def _role(self, node: Issue, role: Optional[str]) -> str:
        if role is not None:
            return role
        return INITIATIVE_ROLE if node in self.hierarchy.initiative_epics else EPIC_ROLE

    def nested_issues(self, node: Issue, role: Optional[str] = None) -> List[Issue]:
        """
        Get the stories below a node.

        For an initiative this is the union of the stories of all its epics,
        for an epic its directly mapped stories.

        Args:
            node: Initiative or epic
            role: ``initiative`` or ``epic``; inferred from the maps if omitted.
                Pass it for placeholders, which share one key across tiers.

        Returns:
            Stories below the node, each once
        """
        if self._role(node, role) == EPIC_ROLE:
            return list(self.hierarchy.stories_of(node))

        seen = set()
        nested = []
        for epic in self.hierarchy.epics_of(node):
            for story in self.hierarchy.stories_of(epic):
                if story.key not in seen:
                    seen.add(story.key)
                    nested.append(story)
        return nested

    def nested_count(self, node: Issue, role: Optional[str] = None) -> int:
        return len(self.nested_issues(node, role))

    def percent_complete(self, node: Issue, role: Optional[str] = None) -> Optional[float]:
        """
        Ratio of complete nested stories, between 0 and 1.

        Returns:
            The ratio, or None when the node has no nested stories
        """
        nested = self.nested_issues(node, role)
        if not nested:
            return None
        done = sum(1 for issue in nested if is_complete(issue))
        return done / len(nested)

    def status_display(self, node: Issue, role: Optional[str] = None):
        """Completion ratio of a node, or its own status name if nothing is nested."""
        ratio = self.percent_complete(node, role)
        if ratio is None:
            return node.status_name
        return ratio

    def summary(self) -> Dict[str, Dict[str, Optional[float]]]:
        """Completion ratio of every initiative and epic keyed by issue key."""
        return {
            'initiatives': {
                i.key: self.percent_complete(i, INITIATIVE_ROLE) for i in self.hierarchy.initiative_epics
            },
            'epics': {
                e.key: self.percent_complete(e, EPIC_ROLE) for e in self.hierarchy.epic_stories
            },
        }
