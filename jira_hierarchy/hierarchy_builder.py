"""
Initiative, epic and story relationship building.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Dict, Iterable, List, Optional, Set, Tuple

from tqdm import tqdm

from .fields import CustomFieldMapping
from .jira_client import report_fields
from .models import UNASSIGNED_EPIC_KEY, Issue

logger = logging.getLogger(__name__)

EPIC_TYPE = "epic"

# Local result of one child query: epics found in the batch, and stories per epic
BatchResult = Tuple[List[Issue], Dict[Issue, List[Issue]]]


class IssueHierarchy:
    """
    Initiative -> Epic and Epic -> Story maps for one session.

    Both maps keep insertion order, which is the display order of the report.
    """

    def __init__(
        self,
        initiative_epics: Optional[Dict[Issue, List[Issue]]] = None,
        epic_stories: Optional[Dict[Issue, List[Issue]]] = None
    ):
        self.initiative_epics: Dict[Issue, List[Issue]] = initiative_epics or {}
        self.epic_stories: Dict[Issue, List[Issue]] = epic_stories or {}

    @property
    def is_empty(self) -> bool:
        return not self.initiative_epics and not self.epic_stories

    def epics_of(self, initiative: Issue) -> List[Issue]:
        return self.initiative_epics.get(initiative, [])

    def stories_of(self, epic: Issue) -> List[Issue]:
        return self.epic_stories.get(epic, [])

    def stories(self) -> List[Issue]:
        """Every story in the hierarchy, once, in map order."""
        seen: Set[str] = set()
        result = []
        for stories in self.epic_stories.values():
            for story in stories:
                if story.key not in seen:
                    seen.add(story.key)
                    result.append(story)
        return result

    def as_keys(self) -> Tuple[Dict[str, List[str]], Dict[str, List[str]]]:
        """Key-only view of both maps, handy for comparisons and logging."""
        return (
            {i.key: [e.key for e in epics] for i, epics in self.initiative_epics.items()},
            {e.key: [s.key for s in stories] for e, stories in self.epic_stories.items()},
        )

    def __repr__(self):
        return (
            f"IssueHierarchy(initiatives={len(self.initiative_epics)}, "
            f"epics={len(self.epic_stories)}, stories={len(self.stories())})"
        )


class HierarchyBuilder:
    """Build the issue hierarchy from Jira query results."""

    def __init__(
        self,
        jira_client,
        field_mapping: CustomFieldMapping,
        max_workers: int = 6,
        task_timeout: Optional[float] = None,
        include_changelog: bool = True,
        verbose: bool = False
    ):
        """
        Initialize hierarchy builder.

        Args:
            jira_client: JiraClient instance
            field_mapping: Session custom field mapping
            max_workers: Concurrent child queries
            task_timeout: Seconds to wait for all child queries before
                giving up on the unfinished ones
            include_changelog: Request change history with child queries
            verbose: Show a progress bar during the fan-out
        """
        self.client = jira_client
        self.field_mapping = field_mapping
        self.max_workers = max_workers
        self.task_timeout = task_timeout
        self.include_changelog = include_changelog
        self.verbose = verbose

    def _load_fields(self, projects: Set[str]) -> List[str]:
        if projects:
            self.field_mapping.load(sorted(projects)[0])
        return report_fields(self.field_mapping)

    def build_from_initiatives(self, projects: Iterable[str], filter_clause: str = "") -> IssueHierarchy:
        """
        Build the hierarchy by querying initiatives and then their children.

        Args:
            projects: Project names acting as the scope filter
            filter_clause: Extra JQL constraints for the child queries

        Returns:
            Pruned hierarchy; empty if the initiative query failed
        """
        projects = set(projects)
        fields = self._load_fields(projects)

        try:
            records = self.client.get_initiatives(projects, fields=fields)
        except Exception as e:
            logger.error(f"Failed to query initiatives for {sorted(projects)}: {e}")
            return IssueHierarchy()

        initiatives = Issue.from_records(records)
        logger.info(f"Querying children of {len(initiatives)} initiative(s)")

        results = self._fan_out(initiatives, projects, filter_clause, fields)

        hierarchy = self.merge(initiatives, results)
        self.prune(hierarchy)

        logger.info(f"✓ Built hierarchy: {hierarchy!r}")
        return hierarchy

    def build_flat(self, projects: Iterable[str], jql: str) -> IssueHierarchy:
        """
        Build the hierarchy from one query without an initiative tier.

        All epics are attached to a single placeholder initiative.

        Args:
            projects: Project names acting as the scope filter
            jql: Query returning epics and stories

        Returns:
            Pruned hierarchy; empty if the query failed
        """
        projects = set(projects)
        fields = self._load_fields(projects)
        expand = "changelog" if self.include_changelog else None

        try:
            records = self.client.search_issues(jql, fields=fields, expand=expand)
        except Exception as e:
            logger.error(f"Failed to query issues: {e}")
            return IssueHierarchy()

        issues = Issue.from_records(records)
        _, epic_stories = self.epic_story_map(issues, projects)

        hierarchy = IssueHierarchy(
            initiative_epics={Issue.placeholder(UNASSIGNED_EPIC_KEY): list(epic_stories)},
            epic_stories=epic_stories,
        )
        self.prune(hierarchy)

        logger.info(f"✓ Built hierarchy: {hierarchy!r}")
        return hierarchy

    def _fan_out(
        self,
        initiatives: List[Issue],
        projects: Set[str],
        filter_clause: str,
        fields: List[str]
    ) -> Dict[str, BatchResult]:
        """Run one child query per initiative and collect the successful results."""

        def fetch_children(initiative: Issue) -> BatchResult:
            logger.debug(f"Queued up children of {initiative.key}")
            records = self.client.get_initiative_children(
                initiative.key,
                filter_clause=filter_clause,
                fields=fields,
                include_changelog=self.include_changelog,
            )
            children = Issue.from_records(records)
            return self.epic_story_map(children, projects)

        results: Dict[str, BatchResult] = {}
        if not initiatives:
            return results

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        futures = {executor.submit(fetch_children, i): i for i in initiatives}

        completed = as_completed(futures, timeout=self.task_timeout)
        progress = None
        if self.verbose:
            progress = tqdm(completed, total=len(futures), desc="Querying initiatives", unit="initiative")
            completed = progress

        try:
            for future in completed:
                initiative = futures[future]
                try:
                    results[initiative.key] = future.result()
                    logger.debug(f"Successfully queried children of {initiative.key}")
                except Exception as e:
                    logger.warning(f"Failed to query children of {initiative.key}: {e}")
        except FuturesTimeoutError:
            for future, initiative in futures.items():
                if not future.done():
                    future.cancel()
                    logger.warning(f"Timed out querying children of {initiative.key}")
        finally:
            if progress is not None:
                progress.close()
            # Unfinished tasks are abandoned, their results are never read
            executor.shutdown(wait=False)

        return results

    def epic_story_map(self, issues: List[Issue], projects: Set[str]) -> BatchResult:
        """
        Partition one batch into epics and the stories that belong to them.

        An issue is an epic if it has no epic link, is in scope and has the
        Epic issue type. Every other issue belongs to the epic its link names
        when that epic is in the same batch, or to the Unassigned placeholder.

        Args:
            issues: Issues of one query batch
            projects: Project names acting as the scope filter

        Returns:
            Tuple of (epics in batch order, epic -> stories)
        """
        epic_link = self.field_mapping.epic_link

        epics_by_key: Dict[str, Issue] = {}
        epic_stories: Dict[Issue, List[Issue]] = {}

        for issue in issues:
            if (
                not _epic_link_value(issue, epic_link)
                and issue.project_name in projects
                and (issue.issue_type or "").lower() == EPIC_TYPE
            ):
                epics_by_key[issue.key] = issue
                epic_stories[issue] = []

        unassigned = Issue.placeholder(UNASSIGNED_EPIC_KEY)

        for issue in issues:
            if issue.key in epics_by_key:
                continue
            epic = epics_by_key.get(_epic_link_value(issue, epic_link), unassigned)
            epic_stories.setdefault(epic, []).append(issue)

        epics = [i for i in issues if (i.issue_type or "").lower() == EPIC_TYPE]
        return epics, epic_stories

    def merge(self, initiatives: List[Issue], results: Dict[str, BatchResult]) -> IssueHierarchy:
        """
        Merge per-initiative results into one hierarchy.

        Results are visited in initiative order, so the outcome does not
        depend on which query finished first. Stories filed under the same
        epic by several initiatives are de-duplicated by key.
        """
        hierarchy = IssueHierarchy()
        story_keys: Dict[Issue, Set[str]] = {}

        for initiative in initiatives:
            if initiative.key not in results:
                continue
            epics, epic_stories = results[initiative.key]
            hierarchy.initiative_epics[initiative] = list(epics)

            for epic, stories in epic_stories.items():
                merged = hierarchy.epic_stories.setdefault(epic, [])
                seen = story_keys.setdefault(epic, set())
                for story in stories:
                    if story.key not in seen:
                        seen.add(story.key)
                        merged.append(story)

        return hierarchy

    def prune(self, hierarchy: IssueHierarchy) -> IssueHierarchy:
        """Drop empty epics, then epics without stories from initiatives, then empty initiatives."""
        for epic in [e for e, stories in hierarchy.epic_stories.items() if not stories]:
            del hierarchy.epic_stories[epic]

        for initiative, epics in hierarchy.initiative_epics.items():
            epics[:] = [e for e in epics if e in hierarchy.epic_stories]

        for initiative in [i for i, epics in hierarchy.initiative_epics.items() if not epics]:
            del hierarchy.initiative_epics[initiative]

        logger.debug(
            f"Pruned hierarchy to {len(hierarchy.initiative_epics)} initiative(s) "
            f"and {len(hierarchy.epic_stories)} epic(s)"
        )
        return hierarchy


def _epic_link_value(issue: Issue, epic_link_field: Optional[str]) -> Optional[str]:
    if not epic_link_field:
        return None
    value = issue.get_field(epic_link_field)
    if isinstance(value, str) and value:
        return value
    return None
