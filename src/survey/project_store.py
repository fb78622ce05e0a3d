"""
Project Store

Persistence for survey project records. The workflow only talks to the
ProjectRepository interface; JSONProjectStore keeps one JSON file per
project on disk and InMemoryProjectStore backs tests.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ProjectNotFoundError
from .models import Project

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def generate_project_id() -> str:
    """Generate a project ID like PRJ-20250101-ab12cd34."""
    return f"PRJ-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{uuid.uuid4().hex[:8]}"


class ProjectRepository(ABC):
    """Load/save interface for project records."""

    @abstractmethod
    def load(self, project_id: str) -> Project:
        """
        Load a project.

        Raises:
            ProjectNotFoundError: If no record exists
        """

    @abstractmethod
    def save(self, project: Project) -> None:
        """Create or replace a project record."""

    @abstractmethod
    def list_projects(self) -> List[Project]:
        """All projects, most recently modified first."""

    @abstractmethod
    def delete(self, project_id: str) -> bool:
        """Delete a project. Returns False if it did not exist."""

    def exists(self, project_id: str) -> bool:
        try:
            self.load(project_id)
        except ProjectNotFoundError:
            return False
        return True

    def create_project(self, name: str, address: Optional[str] = None) -> Project:
        """
        Create and store an empty project.

        Args:
            name: Project name
            address: Site address

        Returns:
            The new Project
        """
        now = utc_now()
        project = Project(
            id=generate_project_id(),
            name=name,
            address=address,
            created_at=now,
            last_modified=now,
        )
        self.save(project)
        logger.info("Created project %s (%s)", project.id, name)
        return project


class JSONProjectStore(ProjectRepository):
    """
    Stores each project as <storage_path>/projects/<id>.json using
    camelCase record keys.
    """

    def __init__(self, storage_path: Optional[str] = None):
        """
        Initialize project store.

        Args:
            storage_path: Path for local storage (default: ~/.mep_survey_store)
        """
        if storage_path:
            self.storage_path = Path(storage_path).expanduser()
        else:
            self.storage_path = Path.home() / ".mep_survey_store"

        self.projects_path = self.storage_path / "projects"
        self.projects_path.mkdir(parents=True, exist_ok=True)

    def _project_file(self, project_id: str) -> Path:
        if not project_id or "/" in project_id or "\\" in project_id or project_id.startswith("."):
            raise ProjectNotFoundError(f"Invalid project id: {project_id!r}")
        return self.projects_path / f"{project_id}.json"

    def load(self, project_id: str) -> Project:
        project_file = self._project_file(project_id)

        if not project_file.exists():
            raise ProjectNotFoundError(f"Project not found: {project_id}")

        with open(project_file, 'r') as f:
            return Project.model_validate(json.load(f))

    def save(self, project: Project) -> None:
        project_file = self._project_file(project.id)
        tmp_file = project_file.with_suffix(".json.tmp")

        with open(tmp_file, 'w') as f:
            json.dump(project.to_record(), f, indent=2)
        tmp_file.replace(project_file)

        logger.debug("Saved project %s to %s", project.id, project_file)

    def list_projects(self) -> List[Project]:
        projects = []
        for project_file in self.projects_path.glob("*.json"):
            with open(project_file, 'r') as f:
                projects.append(Project.model_validate(json.load(f)))

        # Newest first
        projects.sort(key=lambda p: p.last_modified or p.created_at or "", reverse=True)
        return projects

    def delete(self, project_id: str) -> bool:
        project_file = self._project_file(project_id)
        if not project_file.exists():
            return False
        project_file.unlink()
        logger.info("Deleted project %s", project_id)
        return True

    def get_storage_stats(self) -> Dict:
        """
        Get storage statistics.

        Returns:
            Dictionary with storage stats
        """
        files = list(self.projects_path.glob("*.json"))
        total_size = sum(f.stat().st_size for f in files)

        return {
            "project_count": len(files),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "storage_path": str(self.storage_path),
        }


class InMemoryProjectStore(ProjectRepository):
    """Dict-backed repository. Records are copied in and out."""

    def __init__(self, projects: Optional[List[Project]] = None):
        self._records: Dict[str, Dict] = {}
        for project in projects or []:
            self.save(project)

    def load(self, project_id: str) -> Project:
        if project_id not in self._records:
            raise ProjectNotFoundError(f"Project not found: {project_id}")
        return Project.model_validate(self._records[project_id])

    def save(self, project: Project) -> None:
        self._records[project.id] = project.to_record()

    def list_projects(self) -> List[Project]:
        projects = [Project.model_validate(r) for r in self._records.values()]
        projects.sort(key=lambda p: p.last_modified or p.created_at or "", reverse=True)
        return projects

    def delete(self, project_id: str) -> bool:
        return self._records.pop(project_id, None) is not None


__all__ = [
    "ProjectRepository",
    "JSONProjectStore",
    "InMemoryProjectStore",
    "generate_project_id",
]
