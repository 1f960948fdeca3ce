import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Optional


class GitRepoMixin:
    """Builds throwaway repositories with the git CLI; timestamps advance one minute per commit."""

    base_time = 1_700_000_000

    def _setup_tmp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())
        self._clock = 0

    def _teardown_tmp(self):
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _env(self, name: str = "Test User", email: str = "test@example.com"):
        self._clock += 1
        stamp = f"@{self.base_time + self._clock * 60} +0000"
        return {
            **os.environ,
            "GIT_AUTHOR_NAME": name,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_AUTHOR_DATE": stamp,
            "GIT_COMMITTER_NAME": name,
            "GIT_COMMITTER_EMAIL": email,
            "GIT_COMMITTER_DATE": stamp,
        }

    def _git(self, cwd: Path, *args: str, env=None) -> str:
        result = subprocess.run(
            ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
            cwd=cwd,
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )
        return result.stdout.strip()

    def _init_repo(self, name: str = "upstream") -> Path:
        path = self.tmp_dir / name
        path.mkdir(parents=True)
        self._git(path, "init")
        self._git(path, "symbolic-ref", "HEAD", "refs/heads/main")
        self._git(path, "config", "user.name", "Test User")
        self._git(path, "config", "user.email", "test@example.com")
        return path

    def _commit(
        self,
        repo: Path,
        message: str,
        filename: str = "file.txt",
        content: Optional[str] = None,
        author: str = "Test User",
    ) -> str:
        (repo / filename).write_text(content if content is not None else f"content {message}\n")
        self._git(repo, "add", filename)
        email = f"{author.lower().replace(' ', '.')}@example.com"
        self._git(repo, "commit", "-m", message, env=self._env(author, email))
        return self._git(repo, "rev-parse", "HEAD")

    def _merge(self, repo: Path, branch: str, message: str) -> str:
        self._git(repo, "merge", "--no-ff", "-m", message, branch, env=self._env())
        return self._git(repo, "rev-parse", "HEAD")

    def _clone(self, source: Path, name: str = "clone") -> Path:
        target = self.tmp_dir / name
        self._git(self.tmp_dir, "clone", str(source), str(target))
        self._git(target, "config", "user.name", "Test User")
        self._git(target, "config", "user.email", "test@example.com")
        return target
