"""
Issue repository - storage operations for newsletter issues.
"""

from datetime import datetime

from .connection import DatabaseConnection
from .converters import row_to_issue
from .models import DBIssue

# Columns the scraper is allowed to write
SCRAPED_FIELDS = ("title", "issue_date", "description", "thumbnail", "content", "has_details")

ORDER_BY_DATE = "ORDER BY issue_date DESC, id DESC"


class IssueRepository:
    """Repository for newsletter issue operations."""

    def __init__(self, db: DatabaseConnection):
        self._db = db

    def insert(
        self,
        title: str,
        issue_date: str,
        url: str,
        description: str | None = None,
        thumbnail: str | None = None,
        content: str | None = None,
        has_details: bool = False,
    ) -> int:
        """
        Insert a new issue. Returns issue ID.

        Raises:
            sqlite3.IntegrityError: If an issue with this URL already exists
        """
        with self._db.conn() as conn:
            cursor = conn.execute(
                """INSERT INTO issues
                   (title, issue_date, url, description, thumbnail, content, has_details)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (title, issue_date, url, description, thumbnail, content, has_details)
            )
            return cursor.lastrowid

    def insert_many(self, rows: list[dict]) -> list[int]:
        """
        Insert a chunk of issues in one transaction. Returns the new IDs.

        Raises:
            sqlite3.IntegrityError: If any URL already exists; nothing from
                the chunk is written in that case
        """
        ids = []
        with self._db.conn() as conn:
            for row in rows:
                cursor = conn.execute(
                    """INSERT INTO issues
                       (title, issue_date, url, description, thumbnail, content, has_details)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (row["title"], row["issue_date"], row["url"], row.get("description"),
                     row.get("thumbnail"), row.get("content"), row.get("has_details", False))
                )
                ids.append(cursor.lastrowid)
        return ids

    def overwrite_by_url(self, url: str, fields: dict) -> bool:
        """
        Overwrite scraped fields of the issue with this URL and stamp last_checked.

        Returns True if a row was updated.
        """
        updates = {k: v for k, v in fields.items() if k in SCRAPED_FIELDS}
        updates["last_checked"] = datetime.now().isoformat()
        assignments = ", ".join(f"{column} = ?" for column in updates)
        with self._db.conn() as conn:
            cursor = conn.execute(
                f"UPDATE issues SET {assignments} WHERE url = ?",
                [*updates.values(), url]
            )
            return cursor.rowcount > 0

    def update_details(self, issue_id: int, fields: dict) -> bool:
        """Update detail fields for an issue. Always stamps last_checked."""
        updates = {k: v for k, v in fields.items() if k in SCRAPED_FIELDS}
        updates["last_checked"] = datetime.now().isoformat()
        assignments = ", ".join(f"{column} = ?" for column in updates)
        with self._db.conn() as conn:
            cursor = conn.execute(
                f"UPDATE issues SET {assignments} WHERE id = ?",
                [*updates.values(), issue_id]
            )
            return cursor.rowcount > 0

    def get(self, issue_id: int) -> DBIssue | None:
        """Get single issue by ID."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM issues WHERE id = ?", (issue_id,)
            ).fetchone()
            return row_to_issue(row) if row else None

    def get_by_url(self, url: str) -> DBIssue | None:
        """Get issue by URL."""
        with self._db.conn() as conn:
            row = conn.execute(
                "SELECT * FROM issues WHERE url = ?", (url,)
            ).fetchone()
            return row_to_issue(row) if row else None

    def get_all(self) -> list[DBIssue]:
        """Get all issues, newest first."""
        with self._db.conn() as conn:
            rows = conn.execute(f"SELECT * FROM issues {ORDER_BY_DATE}").fetchall()
            return [row_to_issue(row) for row in rows]

    def get_without_details(self) -> list[DBIssue]:
        """Get issues whose details have never been extracted."""
        with self._db.conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM issues WHERE has_details = 0 {ORDER_BY_DATE}"
            ).fetchall()
            return [row_to_issue(row) for row in rows]

    def get_paged(self, page: int = 1, limit: int = 20) -> tuple[list[DBIssue], int]:
        """Get a page of issues (1-based) and the total count."""
        offset = (max(page, 1) - 1) * limit
        with self._db.conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM issues {ORDER_BY_DATE} LIMIT ? OFFSET ?",
                (limit, offset)
            ).fetchall()
            total = conn.execute("SELECT COUNT(*) FROM issues").fetchone()[0]
            return [row_to_issue(row) for row in rows], total

    def search(self, query: str, page: int = 1, limit: int = 20) -> tuple[list[DBIssue], int]:
        """Case-insensitive substring search over title, content, and description."""
        offset = (max(page, 1) - 1) * limit
        pattern = f"%{_escape_like(query.lower())}%"
        where = """WHERE LOWER(title) LIKE ? ESCAPE '\\'
                   OR LOWER(COALESCE(content, '')) LIKE ? ESCAPE '\\'
                   OR LOWER(COALESCE(description, '')) LIKE ? ESCAPE '\\'"""
        params = (pattern, pattern, pattern)
        with self._db.conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM issues {where} {ORDER_BY_DATE} LIMIT ? OFFSET ?",
                (*params, limit, offset)
            ).fetchall()
            total = conn.execute(f"SELECT COUNT(*) FROM issues {where}", params).fetchone()[0]
            return [row_to_issue(row) for row in rows], total

    def count(self) -> int:
        """Total number of stored issues."""
        with self._db.conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM issues").fetchone()[0]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
