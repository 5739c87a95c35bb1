"""
Jira Hierarchy Analytics

Build Initiative -> Epic -> Story rollups from Jira and report completion
and per-developer sprint velocity.
"""

__version__ = "1.0.0"
__author__ = "Jira Hierarchy Analytics"

from .generator import ReportGenerator
from .hierarchy_builder import HierarchyBuilder, IssueHierarchy
from .jira_client import JiraClient, JiraQueryError
from .models import Issue, ReportSelection

__all__ = [
    "ReportGenerator",
    "HierarchyBuilder",
    "IssueHierarchy",
    "JiraClient",
    "JiraQueryError",
    "Issue",
    "ReportSelection",
]
