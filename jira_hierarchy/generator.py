"""
Main report generation orchestrator.
"""

import logging
import time
from typing import Dict, Iterable, List, Optional

from .completion import EPIC_ROLE, INITIATIVE_ROLE, CompletionAggregator
from .fields import CustomFieldMapping
from .hierarchy_builder import HierarchyBuilder, IssueHierarchy
from .jira_client import JiraClient, project_clause
from .models import ReportSelection
from .projection import ProjectionBuilder
from .velocity import VelocityCalculator, team_rollup

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Main orchestrator for Jira hierarchy reports."""

    def __init__(
        self,
        jira_url: str,
        username: str,
        token: str,
        **kwargs
    ):
        """
        Initialize generator.

        Args:
            jira_url: Jira instance URL
            username: Account name or email
            token: API token or password
            **kwargs: Additional configuration options
        """
        self.jira_url = jira_url

        logger.info("Initializing Jira Report Generator")

        self.client = JiraClient(
            jira_url=jira_url,
            username=username,
            token=token,
            timeout=kwargs.get('timeout', 30),
            max_retries=kwargs.get('max_retries', 3),
            page_size=kwargs.get('page_size', 100)
        )

        # One mapping per session, shared by every query and report
        self.field_mapping = CustomFieldMapping(loader=self.client.get_custom_field_mapping)

        self.builder = HierarchyBuilder(
            self.client,
            self.field_mapping,
            max_workers=kwargs.get('max_workers', 6),
            task_timeout=kwargs.get('task_timeout'),
            include_changelog=kwargs.get('include_changelog', True),
            verbose=kwargs.get('verbose', False)
        )

        self.hierarchy = IssueHierarchy()

        logger.info("✓ Generator initialized")

    def load(
        self,
        projects: Iterable[str],
        include_initiatives: bool = True,
        filter_clause: str = "",
        jql: Optional[str] = None
    ) -> dict:
        """
        Query Jira and build the hierarchy for this session.

        Args:
            projects: Project names acting as the scope filter
            include_initiatives: Query initiatives and their children; otherwise
                run one flat query and group its epics under a placeholder
            filter_clause: Extra JQL constraints
            jql: Flat query to run instead of the project query

        Returns:
            Summary statistics dictionary
        """
        start_time = time.time()
        projects = sorted(set(projects))

        logger.info("=" * 80)
        logger.info("Jira Hierarchy Report Generator")
        logger.info("=" * 80)
        logger.info("Configuration:")
        logger.info(f"  Jira URL: {self.jira_url}")
        logger.info(f"  Projects: {projects}")
        logger.info(f"  Include Initiatives: {include_initiatives}")
        logger.info(f"  Filter: {filter_clause.strip() or 'none'}")
        logger.info("")

        logger.info("Phase 1: Loading initiatives, epics and stories")
        logger.info("-" * 80)

        if include_initiatives:
            self.hierarchy = self.builder.build_from_initiatives(projects, filter_clause)
        else:
            if jql is None:
                jql = f"{project_clause(projects)}{filter_clause}"
            self.hierarchy = self.builder.build_flat(projects, jql)

        initiative_count = len(self.hierarchy.initiative_epics)
        epic_count = len(self.hierarchy.epic_stories)
        story_count = len(self.hierarchy.stories())

        logger.info(f"✓ Initiatives: {initiative_count}")
        logger.info(f"✓ Epics: {epic_count}")
        logger.info(f"✓ Stories: {story_count}")
        logger.info("")

        elapsed = time.time() - start_time

        logger.info("=" * 80)
        logger.info("SUMMARY")
        logger.info("=" * 80)
        if self.hierarchy.is_empty:
            logger.warning("No issues loaded; there is nothing to report")
        logger.info(f"Custom fields mapped: {len(self.field_mapping)}")
        logger.info(f"Execution Time: {elapsed:.2f}s ({elapsed/60:.2f} minutes)")
        logger.info("=" * 80)

        return {
            'success': not self.hierarchy.is_empty,
            'initiative_count': initiative_count,
            'epic_count': epic_count,
            'story_count': story_count,
            'execution_time': elapsed,
        }

    def generate(self, selection: Optional[ReportSelection] = None) -> Dict:
        """
        Run every analysis over the loaded hierarchy for one selection.

        Args:
            selection: Active filters for this report

        Returns:
            Dictionary with ``projection``, ``velocity``, ``team`` and ``completion``
        """
        selection = selection or ReportSelection()
        logger.info(f"Generating report for {selection!r}")

        aggregator = CompletionAggregator(self.hierarchy)
        projection = ProjectionBuilder(self.hierarchy, self.field_mapping, aggregator).project(selection)

        velocity = VelocityCalculator(self.hierarchy, self.field_mapping).compute(selection)

        logger.info(f"✓ Report rows: {len(projection)}")

        return {
            'projection': projection,
            'velocity': velocity,
            'team': team_rollup(velocity),
            'completion': self.completion_summary(selection, aggregator),
        }

    def completion_summary(
        self,
        selection: Optional[ReportSelection] = None,
        aggregator: Optional[CompletionAggregator] = None
    ) -> List[Dict]:
        """
        Completion of every selected initiative and its epics.

        Args:
            selection: Active initiative and epic filters
            aggregator: Aggregator to reuse

        Returns:
            One dictionary per initiative, each with its epics
        """
        selection = selection or ReportSelection()
        aggregator = aggregator or CompletionAggregator(self.hierarchy)

        summary = []
        for initiative, epics in self.hierarchy.initiative_epics.items():
            if not selection.includes_initiative(initiative):
                continue

            summary.append({
                'key': initiative.key,
                'summary': initiative.summary,
                'status': initiative.status_name,
                'issue_count': aggregator.nested_count(initiative, INITIATIVE_ROLE),
                'percent_complete': aggregator.percent_complete(initiative, INITIATIVE_ROLE),
                'epics': [
                    {
                        'key': epic.key,
                        'summary': epic.summary,
                        'status': epic.status_name,
                        'issue_count': aggregator.nested_count(epic, EPIC_ROLE),
                        'percent_complete': aggregator.percent_complete(epic, EPIC_ROLE),
                    }
                    for epic in epics
                    if selection.includes_epic(epic)
                ],
            })

        return summary

    def close(self):
        self.client.close()
