"""
Session-scoped cache of Jira custom field identifiers.
"""

import logging
from typing import Callable, Dict, Optional

from .models import EPIC_LINK_FIELD, PROGRAM_FIELD, SPRINT_FIELD, STORY_POINTS_FIELD

logger = logging.getLogger(__name__)


class CustomFieldMapping:
    """
    Map human readable field names to custom field ids for one session.

    The mapping is loaded lazily the first time it is needed and reused for
    every later query. A failed load leaves it empty, so lookups return None
    and the next ``load`` call tries again.
    """

    def __init__(self, loader: Optional[Callable[[str], Dict[str, str]]] = None,
                 mapping: Optional[Dict[str, str]] = None):
        """
        Initialize mapping.

        Args:
            loader: Callable taking a project name and returning ``{name: id}``
            mapping: Preloaded mapping, skips the loader entirely
        """
        self._loader = loader
        self._mapping: Dict[str, str] = dict(mapping or {})

    @property
    def loaded(self) -> bool:
        return bool(self._mapping)

    def load(self, project: str) -> Dict[str, str]:
        """
        Load the mapping for a project unless it has been loaded already.

        Args:
            project: Project used to scope the field lookup

        Returns:
            The (possibly empty) mapping
        """
        if self.loaded:
            return self._mapping

        if self._loader is None:
            logger.warning("No custom field loader configured; custom fields will be absent")
            return self._mapping

        try:
            mapping = self._loader(project)
        except Exception as e:
            logger.warning(f"Failed to load custom fields for project {project}: {e}")
            return self._mapping

        # Another thread may have filled it in the meantime
        if not self._mapping:
            self._mapping = dict(mapping or {})
            logger.info(f"Loaded {len(self._mapping)} custom field mappings")

        return self._mapping

    def get(self, name: str) -> Optional[str]:
        return self._mapping.get(name)

    @property
    def story_points(self) -> Optional[str]:
        return self.get(STORY_POINTS_FIELD)

    @property
    def sprint(self) -> Optional[str]:
        return self.get(SPRINT_FIELD)

    @property
    def epic_link(self) -> Optional[str]:
        return self.get(EPIC_LINK_FIELD)

    @property
    def program(self) -> Optional[str]:
        return self.get(PROGRAM_FIELD)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._mapping)

    def __contains__(self, name):
        return name in self._mapping

    def __len__(self):
        return len(self._mapping)
