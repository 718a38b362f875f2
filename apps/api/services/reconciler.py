"""Merge extracted tasks into a project's task list without duplicates.

Task identity for import purposes is the normalized title, not the primary
key: two unrelated tasks whose titles normalize to the same string are treated
as the same task.
"""

import re
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.errors import InvalidInput, NotFound
from models.records import Project, Task, TaskPriority, TaskStatus
from models.schemas import ImportMode, ReconcileResult, ReconcileStats, TaskEntry
from utils.logging import LogContext, get_logger

logger = get_logger(__name__)

_TRAILING_PUNCTUATION = re.compile(r"[.,!?;:]+$")
_QUOTES = re.compile(r"['\"]")
_WHITESPACE = re.compile(r"\s+")


def normalize_title(title: str) -> str:
    """Canonical form of a task title used as its deduplication key.

    Lowercase, trim, drop trailing punctuation, drop quote characters and
    collapse whitespace runs.
    """
    normalized = title.lower().strip()
    normalized = _TRAILING_PUNCTUATION.sub("", normalized)
    normalized = _QUOTES.sub("", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)
    return normalized.strip()


def parse_entry(entry: Any) -> Optional[TaskEntry]:
    """Turn a raw entry (title string or mapping) into a TaskEntry.

    Unknown status or priority values fall back to pending/medium. Returns
    None for entries without a usable title.
    """
    if isinstance(entry, TaskEntry):
        return entry if entry.title.strip() else None

    if isinstance(entry, str):
        title, status, priority = entry, None, None
    elif isinstance(entry, dict):
        title = entry.get("title")
        status = entry.get("status")
        priority = entry.get("priority")
    else:
        return None

    if not isinstance(title, str) or not title.strip():
        return None

    if status not in {s.value for s in TaskStatus}:
        status = TaskStatus.PENDING
    if priority not in {p.value for p in TaskPriority}:
        priority = TaskPriority.MEDIUM

    try:
        return TaskEntry(title=title.strip(), status=status, priority=priority)
    except ValidationError:
        return None


class TaskReconciler:
    """Fold a batch of extracted tasks into a project.

    The project's existing tasks are read once at the start of the batch.
    By default every write is committed as soon as it is made, so a failure
    mid-batch leaves earlier writes in place; with ``atomic=True`` the whole
    batch commits or rolls back together.
    """

    def __init__(self, session: AsyncSession, atomic: bool = False):
        self.session = session
        self.atomic = atomic

    async def reconcile(
        self,
        project_id: int,
        entries: list,
        mode: ImportMode | str = ImportMode.MERGE,
        recording_id: int | None = None,
    ) -> ReconcileResult:
        """Create, update or skip each entry in input order.

        Args:
            project_id: Target project
            entries: Title strings or {title, status?, priority?} mappings
            mode: "merge" to deduplicate against existing tasks,
                "create_new" to always create
            recording_id: Recording the entries were extracted from, linked
                on created tasks

        Raises:
            InvalidInput: Missing project id, non-list entries or unknown mode
            NotFound: Project does not exist
        """
        if project_id is None:
            raise InvalidInput("Project ID is required", details={"field": "project_id"})
        if not isinstance(entries, list):
            raise InvalidInput("Tasks must be a list", details={"field": "tasks"})
        try:
            mode = ImportMode(mode)
        except ValueError:
            raise InvalidInput(
                f"Unknown import mode: {mode}",
                details={"field": "mode", "allowed": [m.value for m in ImportMode]},
            ) from None

        with LogContext(project_id=project_id):
            return await self._reconcile(project_id, entries, mode, recording_id)

    async def _reconcile(
        self,
        project_id: int,
        entries: list,
        mode: ImportMode,
        recording_id: int | None,
    ) -> ReconcileResult:
        if await self.session.get(Project, project_id) is None:
            raise NotFound("Project", project_id)

        existing = await self._existing_tasks(project_id)
        stats = ReconcileStats(total=len(entries))

        try:
            for raw in entries:
                entry = parse_entry(raw)
                if entry is None:
                    continue
                if mode == ImportMode.CREATE_NEW:
                    await self._create(project_id, entry, recording_id)
                    stats.created += 1
                    continue

                key = normalize_title(entry.title)
                task = existing.get(key)
                if task is None:
                    existing[key] = await self._create(project_id, entry, recording_id)
                    stats.created += 1
                elif entry.status == TaskStatus.DONE and task.status != TaskStatus.DONE:
                    task.status = TaskStatus.DONE
                    await self._write()
                    stats.updated += 1
                else:
                    stats.skipped += 1

            if self.atomic:
                await self.session.commit()
        except Exception:
            if self.atomic:
                await self.session.rollback()
            raise

        logger.info(
            f"Reconciled {stats.total} task entries ({mode.value}): "
            f"{stats.created} created, {stats.updated} updated, {stats.skipped} skipped",
            extra={"mode": mode.value},
        )
        return ReconcileResult(stats=stats, mode=mode)

    async def _existing_tasks(self, project_id: int) -> dict[str, Task]:
        result = await self.session.execute(
            select(Task).where(Task.project_id == project_id).order_by(Task.id)
        )
        # Later tasks win when several normalize to the same title
        return {normalize_title(t.title): t for t in result.scalars().all()}

    async def _create(
        self, project_id: int, entry: TaskEntry, recording_id: int | None
    ) -> Task:
        task = Task(
            project_id=project_id,
            recording_id=recording_id,
            title=entry.title,
            status=entry.status,
            priority=entry.priority,
        )
        self.session.add(task)
        await self._write()
        return task

    async def _write(self) -> None:
        if self.atomic:
            await self.session.flush()
        else:
            await self.session.commit()
