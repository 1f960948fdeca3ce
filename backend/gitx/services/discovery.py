"""
Repository discovery.

Each configured scan path is checked on its own; directories below a scan
path are never searched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from gitx.config import ProjectSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveredRepo:
    name: str
    path: str


def is_git_repo(path: Path) -> bool:
    """A working copy has `.git`; a bare repository has `packed-refs`."""
    return (path / ".git").exists() or (path / "packed-refs").exists()


class RepositoryDiscovery:
    def __init__(self, projects: Sequence[ProjectSettings]):
        self.projects = list(projects)

    def discover_all(self) -> List[DiscoveredRepo]:
        """Return one DiscoveredRepo per scan path that is a repository root."""
        found: List[DiscoveredRepo] = []
        seen = set()

        for project in self.projects:
            for scan_path in project.scan_paths:
                full_path = Path(project.base_path) / scan_path

                if not full_path.exists():
                    logger.warning(
                        f"Scan path does not exist: {full_path} (project {project.name})"
                    )
                    continue

                if not is_git_repo(full_path):
                    logger.debug(f"Not a git repository: {full_path}")
                    continue

                try:
                    canonical = full_path.resolve(strict=True)
                except (OSError, RuntimeError) as e:
                    logger.warning(f"Failed to canonicalize {full_path}: {e}")
                    canonical = full_path.absolute()

                if str(canonical) in seen:
                    logger.debug(f"Already discovered: {canonical}")
                    continue
                seen.add(str(canonical))

                name = full_path.name or canonical.name or "unknown"
                logger.debug(f"Found repository {name} at {canonical}")
                found.append(DiscoveredRepo(name=name, path=str(canonical)))

        logger.info(f"Discovered {len(found)} repositories")
        return found
