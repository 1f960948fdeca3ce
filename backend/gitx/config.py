"""
Application configuration
"""
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class ProjectSettings(BaseModel):
    """A base directory plus the relative paths scanned for repositories."""

    name: str
    base_path: Path
    scan_paths: List[str] = Field(default_factory=lambda: ["."])


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "gitx"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Logging
    LOG_FORMAT: str = "text"
    LOG_LEVEL: str = "INFO"

    # Database (MongoDB)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "gitx"
    # Multi-document transactions need a replica set
    MONGODB_USE_TRANSACTIONS: bool = False

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # Git
    GIT_REMOTE_NAME: str = "origin"
    GIT_SSH_KEY_PATH: Optional[str] = None
    GIT_FETCH_TIMEOUT_SECS: int = 300

    # Indexer
    INDEXER_ENABLED: bool = True
    INDEXER_INTERVAL_SECS: int = 300
    INDEXER_MAX_COMMITS_PER_BRANCH: int = 2000
    INDEXER_WORKER_THREADS: int = 4
    INDEXER_INDEX_TAGS: bool = True
    INDEXER_PRUNE_STALE_BRANCHES: bool = False

    # Branch comparison
    BRANCH_DIFF_MATCH_COMMITTER_TIME: bool = False
    BRANCH_DIFF_LIMIT: int = 1000

    # Repository discovery
    PROJECTS: List[ProjectSettings] = []
    GIT_BASE_PATH: Optional[Path] = None

    class Config:
        env_file = ".env"
        case_sensitive = True

    def effective_projects(self) -> List[ProjectSettings]:
        """GIT_BASE_PATH, when set, replaces PROJECTS with a single project."""
        if self.GIT_BASE_PATH is not None:
            name = self.GIT_BASE_PATH.name or "default"
            return [ProjectSettings(name=name, base_path=self.GIT_BASE_PATH)]
        return list(self.PROJECTS)

    @property
    def ssh_key_path(self) -> Path:
        if self.GIT_SSH_KEY_PATH:
            return Path(self.GIT_SSH_KEY_PATH).expanduser()
        return Path.home() / ".ssh" / "id_rsa"


settings = Settings()
