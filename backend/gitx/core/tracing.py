"""
Tracing context for indexing cycles, repository tasks and Celery tasks.

Values live in contextvars, so they follow asyncio tasks and reach worker
threads when the submitting code runs the callable inside a copied context
(IndexerScheduler does this for every blocking call).

    TracingContext.set(correlation_id="abc-123", cycle_id="5f1c0e2a9b3d")
    TracingContext.set(repo_id="42", repo_path="/srv/git/api")
    TracingContext.get()   # merged into every JSON log line
"""

from contextvars import ContextVar
from typing import Dict

_FIELDS = (
    "correlation_id",
    "cycle_id",
    "repo_id",
    "repo_path",
    "branch",
    "task_name",
)

_vars: Dict[str, ContextVar] = {
    name: ContextVar(name, default="") for name in _FIELDS
}


class TracingContext:
    """Per-execution tracing fields; empty string means unset."""

    @staticmethod
    def set(
        correlation_id: str = "",
        cycle_id: str = "",
        repo_id: str = "",
        repo_path: str = "",
        branch: str = "",
        task_name: str = "",
    ) -> None:
        """Set the given fields; empty arguments leave the current value alone."""
        values = {
            "correlation_id": correlation_id,
            "cycle_id": cycle_id,
            "repo_id": repo_id,
            "repo_path": repo_path,
            "branch": branch,
            "task_name": task_name,
        }
        for name, value in values.items():
            if value:
                _vars[name].set(value)

    @staticmethod
    def get() -> Dict[str, str]:
        return {name: var.get() for name, var in _vars.items()}

    @staticmethod
    def get_log_prefix() -> str:
        """`[corr=abcd1234]` for text logs, or empty when no correlation id is set."""
        corr_id = _vars["correlation_id"].get()
        return f"[corr={corr_id[:8]}]" if corr_id else ""

    @staticmethod
    def clear_branch() -> None:
        _vars["branch"].set("")

    @staticmethod
    def clear() -> None:
        for var in _vars.values():
            var.set("")
