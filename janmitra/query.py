"""Read side of the issue store."""

import logging

from janmitra.storage import IssueRepository

logger = logging.getLogger(__name__)


class QueryService:
    def __init__(self, repository: IssueRepository):
        self.repository = repository

    def list_issues(self) -> list:
        """All issues, newest first (created_at DESC, then id DESC)."""
        issues = self.repository.list_recent()
        logger.info(f"Listed {len(issues)} issues")
        return issues

    def count_issues(self) -> int:
        return self.repository.count()
