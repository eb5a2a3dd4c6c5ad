# src/taskbot/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .task_models import DueReminder, Project, Reminder, Task, TaskFilter, TaskStatus, User

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite store for users, projects, tasks and reminders.

    The schema is migration-safe in the simple way:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection

    Project names are unique per owner on their case-folded form
    (name_key). SQLite's LOWER() only folds ASCII, so the key is computed
    in Python.
    """

    def __init__(self, db_path: str | Path = "taskbot.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s tasks=%s", self._db_path, total)

    def close(self) -> None:
        """Shutdown hook (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    external_id TEXT NOT NULL UNIQUE,
                    display_name TEXT,
                    channel TEXT NOT NULL DEFAULT 'console',
                    address TEXT NOT NULL DEFAULT '',
                    created_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    name_key TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    UNIQUE (owner_id, name_key)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    project_id INTEGER REFERENCES projects(id) ON DELETE SET NULL,
                    title TEXT NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    due_at REAL,
                    status TEXT NOT NULL DEFAULT 'todo',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    scheduled_at REAL NOT NULL,
                    sent INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    sent_at REAL,
                    message_ref TEXT
                )
                """
            )

            # Columns added after the first release go through add_col so existing files keep opening.
            cur.execute("PRAGMA table_info(reminders)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE reminders ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added reminders.%s", name)

            add_col("sent_at", "REAL")
            add_col("message_ref", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_owner_status ON tasks(owner_id, status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reminders_due ON reminders(sent, scheduled_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_reminders_task ON reminders(task_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _tags_to_str(tags: list[str] | None) -> str:
        return json.dumps(list(tags or []), ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            return []
        return [str(t) for t in val] if isinstance(val, list) else []

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            external_id=str(row["external_id"]),
            display_name=row["display_name"],
            channel=str(row["channel"] or ""),
            address=str(row["address"] or ""),
            created_at=float(row["created_at"] or 0.0),
        )

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=int(row["id"]),
            owner_id=int(row["owner_id"]),
            name=str(row["name"]),
            created_at=float(row["created_at"] or 0.0),
        )

    def _row_to_task(self, row: sqlite3.Row, *, prefix: str = "") -> Task:
        keys = row.keys()
        project_name_key = f"{prefix}project_name"
        return Task(
            id=int(row[f"{prefix}id"]),
            owner_id=int(row[f"{prefix}owner_id"]),
            project_id=int(row[f"{prefix}project_id"]) if row[f"{prefix}project_id"] is not None else None,
            title=str(row[f"{prefix}title"] or ""),
            tags=self._str_to_tags(row[f"{prefix}tags"]),
            due_at=float(row[f"{prefix}due_at"]) if row[f"{prefix}due_at"] is not None else None,
            status=TaskStatus.from_db(row[f"{prefix}status"]),
            created_at=float(row[f"{prefix}created_at"] or 0.0),
            updated_at=float(row[f"{prefix}updated_at"] or 0.0),
            project_name=row[project_name_key] if project_name_key in keys else None,
        )

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row, *, prefix: str = "") -> Reminder:
        return Reminder(
            id=int(row[f"{prefix}id"]),
            task_id=int(row[f"{prefix}task_id"]),
            scheduled_at=float(row[f"{prefix}scheduled_at"]),
            sent=bool(row[f"{prefix}sent"]),
            created_at=float(row[f"{prefix}created_at"] or 0.0),
            sent_at=float(row[f"{prefix}sent_at"]) if row[f"{prefix}sent_at"] is not None else None,
            message_ref=row[f"{prefix}message_ref"],
        )

    # ---- users ----

    def get_or_create_user(
        self,
        external_id: str,
        display_name: str | None = None,
        *,
        channel: str = "console",
        address: str | None = None,
    ) -> User:
        """
        Look up a user by external id, creating it on first contact.

        The delivery address is refreshed when it changes (e.g. the user
        talks to the bot from another room).
        """
        if not external_id or not external_id.strip():
            raise ValueError("external_id is required")

        external_id = external_id.strip()
        address = (address or external_id).strip()
        now = time.time()

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO users(external_id, display_name, channel, address, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(external_id) DO UPDATE SET
                    channel = excluded.channel,
                    address = excluded.address,
                    display_name = COALESCE(excluded.display_name, users.display_name)
                """,
                (external_id, display_name, channel, address, now),
            )
            conn.commit()
            cur.execute("SELECT * FROM users WHERE external_id = ?", (external_id,))
            row = cur.fetchone()
            if row is None:
                raise RuntimeError(f"user row vanished external_id={external_id}")
            return self._row_to_user(row)
        finally:
            conn.close()

    def get_user(self, user_id: int) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (int(user_id),)).fetchone()
            return self._row_to_user(row) if row else None
        finally:
            conn.close()

    def find_user(self, external_id: str) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE external_id = ?", ((external_id or "").strip(),)
            ).fetchone()
            return self._row_to_user(row) if row else None
        finally:
            conn.close()

    # ---- projects ----

    def get_or_create_project(self, owner_id: int, name: str) -> Project:
        """
        Case-insensitive lookup-or-create scoped to the owner.

        Concurrent callers converge on one row thanks to UNIQUE(owner_id, name_key).
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("project name is required")

        name_key = name.casefold()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO projects(owner_id, name, name_key, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(owner_id, name_key) DO NOTHING
                """,
                (int(owner_id), name, name_key, time.time()),
            )
            if cur.rowcount == 1:
                logger.info("Project created owner_id=%s name=%r", owner_id, name)
            conn.commit()
            cur.execute(
                "SELECT * FROM projects WHERE owner_id = ? AND name_key = ?",
                (int(owner_id), name_key),
            )
            row = cur.fetchone()
            if row is None:
                raise RuntimeError(f"project row vanished owner_id={owner_id} name={name!r}")
            return self._row_to_project(row)
        finally:
            conn.close()

    def list_projects(self, owner_id: int) -> list[Project]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM projects WHERE owner_id = ? ORDER BY name_key ASC",
                (int(owner_id),),
            ).fetchall()
            return [self._row_to_project(r) for r in rows]
        finally:
            conn.close()

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def insert_task(
        self,
        *,
        owner_id: int,
        title: str,
        tags: list[str] | None = None,
        project_id: int | None = None,
        due_at: float | None = None,
        status: TaskStatus = TaskStatus.TODO,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(owner_id, project_id, title, tags, due_at, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(owner_id),
                    project_id,
                    title.strip(),
                    self._tags_to_str(tags),
                    due_at,
                    status.value,
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s owner_id=%s due_at=%s", task_id, owner_id, due_at)
        finally:
            conn.close()

        task = self.get_task(task_id)
        if task is None:
            raise RuntimeError(f"task row vanished id={task_id}")
        return task

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                """
                SELECT t.*, p.name AS project_name
                FROM tasks t
                LEFT JOIN projects p ON p.id = t.project_id
                WHERE t.id = ?
                """,
                (int(task_id),),
            ).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks(self, flt: TaskFilter | None = None) -> list[Task]:
        flt = flt or TaskFilter()
        where: list[str] = []
        params: list[Any] = []

        if flt.owner_id is not None:
            where.append("t.owner_id = ?")
            params.append(int(flt.owner_id))
        if flt.project_id is not None:
            where.append("t.project_id = ?")
            params.append(int(flt.project_id))
        if flt.statuses:
            where.append(f"t.status IN ({','.join('?' for _ in flt.statuses)})")
            params.extend(s.value for s in flt.statuses)
        if flt.exclude_statuses:
            where.append(f"t.status NOT IN ({','.join('?' for _ in flt.exclude_statuses)})")
            params.extend(s.value for s in flt.exclude_statuses)
        if flt.due_from is not None:
            where.append("t.due_at >= ?")
            params.append(float(flt.due_from))
        if flt.due_before is not None:
            where.append("t.due_at < ?")
            params.append(float(flt.due_before))

        sql = "SELECT t.*, p.name AS project_name FROM tasks t LEFT JOIN projects p ON p.id = t.project_id"
        if where:
            sql += " WHERE " + " AND ".join(where)
        order = "DESC" if flt.newest_first else "ASC"
        sql += f" ORDER BY t.created_at {order}, t.id {order}"
        if flt.limit is not None:
            sql += " LIMIT ?"
            params.append(int(flt.limit))

        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def update_task_status(self, task_id: int, new_status: TaskStatus) -> None:
        self.update_task_fields(task_id, status=new_status)

    def update_task_fields(
        self,
        task_id: int,
        *,
        status: TaskStatus | None = None,
        title: str | None = None,
        due_at: float | None = None,
        clear_due: bool = False,
        project_id: int | None = None,
        tags: list[str] | None = None,
    ) -> None:
        fields: list[str] = []
        params: list[Any] = []

        if status is not None:
            fields.append("status = ?")
            params.append(status.value)

        if title is not None:
            if not title.strip():
                raise ValueError("title cannot be empty")
            fields.append("title = ?")
            params.append(title.strip())

        if clear_due:
            fields.append("due_at = NULL")
        elif due_at is not None:
            fields.append("due_at = ?")
            params.append(float(due_at))

        if project_id is not None:
            fields.append("project_id = ?")
            params.append(int(project_id))

        if tags is not None:
            fields.append("tags = ?")
            params.append(self._tags_to_str(tags))

        if not fields:
            return

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"

        conn = self._get_conn()
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    def delete_task(self, task_id: int) -> bool:
        """Delete a task; its reminders go with it (ON DELETE CASCADE)."""
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            deleted = cur.rowcount == 1
        finally:
            conn.close()
        if deleted:
            logger.info("Task deleted id=%s", task_id)
        return deleted

    # ---- reminders ----

    def insert_reminder(self, task_id: int, scheduled_at: float) -> Reminder:
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO reminders(task_id, scheduled_at, sent, created_at) VALUES (?, ?, 0, ?)",
                (int(task_id), float(scheduled_at), now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for reminders insert")
            logger.debug("Reminder added id=%s task_id=%s scheduled_at=%s", rowid, task_id, scheduled_at)
            return Reminder(
                id=int(rowid),
                task_id=int(task_id),
                scheduled_at=float(scheduled_at),
                sent=False,
                created_at=now,
            )
        finally:
            conn.close()

    def list_reminders(self, task_id: int) -> list[Reminder]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM reminders WHERE task_id = ? ORDER BY scheduled_at ASC, id ASC",
                (int(task_id),),
            ).fetchall()
            return [self._row_to_reminder(r) for r in rows]
        finally:
            conn.close()

    def find_due_unsent(
        self,
        *,
        now_ts: float,
        channel: str | None = None,
        limit: int | None = None,
    ) -> list[DueReminder]:
        """
        Unsent reminders with scheduled_at <= now_ts, joined with the task and
        the owner's delivery address. Oldest first.
        """
        sql = """
            SELECT
                r.id AS r_id, r.task_id AS r_task_id, r.scheduled_at AS r_scheduled_at,
                r.sent AS r_sent, r.created_at AS r_created_at, r.sent_at AS r_sent_at,
                r.message_ref AS r_message_ref,
                t.id AS t_id, t.owner_id AS t_owner_id, t.project_id AS t_project_id,
                t.title AS t_title, t.tags AS t_tags, t.due_at AS t_due_at,
                t.status AS t_status, t.created_at AS t_created_at, t.updated_at AS t_updated_at,
                p.name AS t_project_name,
                u.channel AS u_channel, u.address AS u_address
            FROM reminders r
            JOIN tasks t ON t.id = r.task_id
            JOIN users u ON u.id = t.owner_id
            LEFT JOIN projects p ON p.id = t.project_id
            WHERE r.sent = 0
              AND r.scheduled_at <= ?
        """
        params: list[Any] = [float(now_ts)]
        if channel is not None:
            sql += " AND u.channel = ?"
            params.append(channel)
        sql += " ORDER BY r.scheduled_at ASC, r.id ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        conn = self._get_conn()
        try:
            rows = conn.execute(sql, params).fetchall()
            return [
                DueReminder(
                    reminder=self._row_to_reminder(r, prefix="r_"),
                    task=self._row_to_task(r, prefix="t_"),
                    channel=str(r["u_channel"] or ""),
                    address=str(r["u_address"] or ""),
                )
                for r in rows
            ]
        finally:
            conn.close()

    def mark_sent(
        self,
        reminder_id: int,
        *,
        message_ref: str | None = None,
        sent_at: float | None = None,
    ) -> None:
        if sent_at is None:
            sent_at = time.time()
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE reminders SET sent = 1, sent_at = ?, message_ref = ? WHERE id = ?",
                (float(sent_at), message_ref, int(reminder_id)),
            )
            conn.commit()
        finally:
            conn.close()
