"""
Jira REST API client wrapper for hierarchy queries.
"""

import logging
from typing import Dict, Iterable, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .fields import CustomFieldMapping
from .models import CUSTOM_FIELD_NAMES

logger = logging.getLogger(__name__)

MYSELF_PATH = "/rest/api/2/myself"
SEARCH_PATH = "/rest/api/2/search"
FIELD_PATH = "/rest/api/2/field"

STANDARD_FIELDS = [
    "project", "key", "summary", "description", "status", "issuetype", "created",
    "resolutiondate", "labels", "assignee", "reporter", "priority", "fixVersions",
    "duedate", "components",
]


class JiraQueryError(Exception):
    """A search or metadata request against Jira failed."""


class JiraClient:
    """Wrapper for the Jira REST API with hierarchy-specific queries."""

    def __init__(
        self,
        jira_url: str,
        username: str,
        token: str,
        timeout: int = 30,
        max_retries: int = 3,
        page_size: int = 100,
        session: Optional[requests.Session] = None,
        validate: bool = True
    ):
        """
        Initialize Jira client.

        Args:
            jira_url: Jira instance URL
            username: Account name or email
            token: API token or password
            timeout: Request timeout in seconds
            max_retries: Retry attempts for failed connections and 5xx responses
            page_size: Issues requested per search page
            session: Preconfigured session (mainly for tests)
            validate: Check the credentials once before any query
        """
        self.jira_url = jira_url.rstrip('/')
        self.timeout = timeout
        self.page_size = page_size

        if session is None:
            session = requests.Session()
            retry = Retry(
                total=max_retries,
                backoff_factor=0.5,
                status_forcelist=(500, 502, 503, 504),
                allowed_methods=frozenset(['GET']),
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount('http://', adapter)
            session.mount('https://', adapter)

        self.session = session
        self.session.auth = (username, token)
        self.session.headers.update({"Accept": "application/json"})

        logger.info(f"Connecting to Jira: {self.jira_url}")

        if validate:
            # Fail on the first request so a bad password cannot lock the account
            try:
                self._get(MYSELF_PATH)
                logger.info("✓ Jira authentication successful")
            except JiraQueryError as e:
                logger.error("Authentication failed")
                raise ValueError(f"Jira authentication failed: {e}") from e

    def _get(self, path: str, params: Optional[Dict] = None):
        try:
            response = self.session.get(f"{self.jira_url}{path}", params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise JiraQueryError(f"GET {path} failed: {e}") from e

    def search_issues(
        self,
        jql: str,
        fields: Optional[Iterable[str]] = None,
        expand: Optional[str] = None
    ) -> List[Dict]:
        """
        Run a JQL search and collect every page of results.

        Args:
            jql: Jira Query Language expression
            fields: Fields to populate on each issue
            expand: Expand directive, e.g. ``changelog``

        Returns:
            List of raw issue dictionaries
        """
        logger.debug(f"Searching issues: {jql}")

        params = {"jql": jql, "maxResults": self.page_size}
        if fields:
            params["fields"] = ",".join(fields)
        if expand:
            params["expand"] = expand

        issues: List[Dict] = []
        start_at = 0

        while True:
            params["startAt"] = start_at
            data = self._get(SEARCH_PATH, params=dict(params))

            page = data.get("issues", [])
            issues.extend(page)

            total = data.get("total", len(issues))
            start_at += len(page)

            if not page or start_at >= total:
                break

        logger.debug(f"Search returned {len(issues)} issue(s)")
        return issues

    def get_initiatives(self, projects: Iterable[str], fields: Optional[Iterable[str]] = None) -> List[Dict]:
        """
        Get all Initiative issues in the given projects.

        Args:
            projects: Project names acting as the scope filter
            fields: Fields to populate

        Returns:
            List of raw initiative dictionaries
        """
        jql = f"{project_clause(projects)} AND issuetype = Initiative"
        return self.search_issues(jql, fields=fields, expand="names")

    def get_initiative_children(
        self,
        initiative_key: str,
        filter_clause: str = "",
        fields: Optional[Iterable[str]] = None,
        include_changelog: bool = True
    ) -> List[Dict]:
        """
        Get all epics and stories below an initiative.

        Args:
            initiative_key: Key of the initiative
            filter_clause: Extra ``AND (...)`` constraints
            fields: Fields to populate
            include_changelog: Expand change history (slower, needed for velocity)

        Returns:
            List of raw issue dictionaries
        """
        jql = f"issuekey in childIssuesOf({initiative_key}){filter_clause}"
        expand = "changelog" if include_changelog else None
        return self.search_issues(jql, fields=fields, expand=expand)

    def get_custom_field_mapping(self, project: str) -> Dict[str, str]:
        """
        Get the mapping of custom field names to ids.

        Args:
            project: Project the mapping is requested for

        Returns:
            Dictionary of field name to field id
        """
        logger.debug(f"Fetching custom fields for project {project}")

        fields = self._get(FIELD_PATH)
        mapping = {}
        for field in fields:
            if not field.get("custom"):
                continue
            name = field.get("name")
            # First definition wins when a name is reused
            if name and name not in mapping:
                mapping[name] = field.get("id")

        return mapping

    def close(self):
        self.session.close()


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


def project_clause(projects: Iterable[str]) -> str:
    """JQL restricting a query to the given project names, each quoted and escaped."""
    return f"project in ({', '.join(_quote(p) for p in sorted(set(projects)))})"


def build_filter_clause(
    epics: Optional[Iterable[str]] = None,
    labels: Optional[Iterable[str]] = None,
    sprints: Optional[Iterable[str]] = None
) -> str:
    """
    Build the JQL suffix that narrows child queries.

    Projects are deliberately left out; filtering by project in JQL is slow,
    so the builder filters by project after the query instead.

    Args:
        epics: Epic keys; matches the epics and the issues linked to them
        labels: Labels an issue must carry (or carry none)
        sprints: Sprints an issue must be in (or be in none)

    Returns:
        JQL fragment starting with `` AND`` or an empty string
    """
    clause = ""

    epics = sorted(set(epics or []))
    if epics:
        keys = ",".join(epics)
        clause += f' AND ("epic link" in ({keys}) OR id in ({keys}))'

    for values, jql_key in ((labels, "labels"), (sprints, "sprint")):
        values = sorted(set(values or []))
        if values:
            quoted = ",".join(_quote(v) for v in values)
            clause += f" AND ({jql_key} IN ({quoted}) OR {jql_key} IS EMPTY)"

    return clause


def report_fields(field_mapping: CustomFieldMapping) -> List[str]:
    """Standard fields plus the custom fields the reports need."""
    fields = list(STANDARD_FIELDS)
    for name in CUSTOM_FIELD_NAMES:
        field_id = field_mapping.get(name)
        if field_id and field_id not in fields:
            fields.append(field_id)
    return fields
