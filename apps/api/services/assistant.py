"""Project assistant: free-form questions about what to work on next.

The model sees the project's open tasks grouped by priority, how many are
done, and the five most recent decisions. Unlike search answers, assistant
answers are the whole point of the call, so provider failures are raised.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.errors import InvalidInput, NotFound, ServiceUnavailable
from models.records import Decision, Project, Task, TaskPriority, TaskStatus
from models.schemas import AssistantAnswer, AssistantContext
from services.llm_providers.base import BaseLLMProvider
from utils.logging import LogContext, get_logger

logger = get_logger(__name__)

RECENT_DECISIONS = 5
NO_ANSWER = "Sorry, I could not generate a response."

_PRIORITY_RANK = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}

PROJECT_SYSTEM_PROMPT = """You are a helpful AI assistant for developers. You help them manage their tasks and priorities.
Your role is to:
- Give practical advice on what to work on next
- Help prioritize tasks
- Identify potential blockers or dependencies
- Give encouragement and actionable suggestions

Keep responses concise but helpful. Use bullet points when listing things.
Respond in the same language as the user's question."""

TASK_SYSTEM_PROMPT = """You are a helpful AI assistant for developers. You help them complete specific tasks.
Your role is to:
- Give practical, actionable advice
- Break down complex tasks into steps
- Identify potential issues
- Suggest best practices
- Provide code snippets or commands when relevant

Keep responses concise but helpful. Use bullet points when listing things.
Respond in the same language as the user's question."""


def _task_lines(tasks: list[Task]) -> str:
    if not tasks:
        return "- None"
    return "\n".join(f"- {t.title}" for t in tasks)


def build_project_context(
    project: Project, tasks: list[Task], decisions: list[Decision]
) -> tuple[str, AssistantContext]:
    """Render the project state the assistant answers from.

    Args:
        project: The project being asked about
        tasks: The project's tasks, high priority first
        decisions: Most recent decisions first

    Returns:
        The prompt context and the task counts it summarizes
    """
    pending = [t for t in tasks if t.status != TaskStatus.DONE]
    done = [t for t in tasks if t.status == TaskStatus.DONE]
    by_priority = {
        priority: [t for t in pending if t.priority == priority]
        for priority in TaskPriority
    }

    lines = [f"Project: {project.name}"]
    if project.description:
        lines.append(f"Description: {project.description}")
    lines += [
        "",
        "TASKS OVERVIEW:",
        f"- Total pending: {len(pending)}",
        f"- Completed: {len(done)}",
        f"- High priority: {len(by_priority[TaskPriority.HIGH])}",
        f"- Medium priority: {len(by_priority[TaskPriority.MEDIUM])}",
        f"- Low priority: {len(by_priority[TaskPriority.LOW])}",
        "",
        "HIGH PRIORITY TASKS (Do First):",
        _task_lines(by_priority[TaskPriority.HIGH]),
        "",
        "MEDIUM PRIORITY TASKS (Do Next):",
        _task_lines(by_priority[TaskPriority.MEDIUM]),
        "",
        "LOW PRIORITY TASKS (Do Later):",
        _task_lines(by_priority[TaskPriority.LOW]),
    ]
    if decisions:
        lines += ["", "RECENT DECISIONS:"]
        lines += [
            f"- {d.title}: {d.reason}" if d.reason else f"- {d.title}" for d in decisions
        ]

    stats = AssistantContext(
        total_pending=len(pending),
        high_priority=len(by_priority[TaskPriority.HIGH]),
        completed=len(done),
    )
    return "\n".join(lines), stats


class AssistantService:
    """Answer questions about a project's priorities or a single task."""

    def __init__(
        self,
        session: AsyncSession,
        llm: Optional[BaseLLMProvider],
        temperature: float = 0.7,
        max_tokens: int = 500,
        task_max_tokens: int = 800,
    ):
        self.session = session
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.task_max_tokens = task_max_tokens

    async def ask(self, project_id: int, question: str) -> AssistantAnswer:
        """Ask about the state of a project.

        Raises:
            InvalidInput: Missing project id or empty question
            ServiceUnavailable: No provider configured or the call failed
            NotFound: Project does not exist
        """
        if project_id is None:
            raise InvalidInput("Project ID is required", details={"field": "project_id"})
        if not question or not question.strip():
            raise InvalidInput("Question is required", details={"field": "question"})
        if self.llm is None:
            raise ServiceUnavailable("AI provider is not configured")

        with LogContext(project_id=project_id):
            project = await self.session.get(Project, project_id)
            if project is None:
                raise NotFound("Project", project_id)

            tasks = await self._tasks_by_priority(project_id)
            result = await self.session.execute(
                select(Decision)
                .where(Decision.project_id == project_id)
                .order_by(Decision.created_at.desc(), Decision.id.desc())
                .limit(RECENT_DECISIONS)
            )
            context, stats = build_project_context(
                project, tasks, list(result.scalars().all())
            )

            answer = await self._complete(
                PROJECT_SYSTEM_PROMPT,
                f"Here's the current state of the project:\n\n{context}"
                f"\n\nUser question: {question.strip()}",
                self.max_tokens,
            )
            logger.info(
                f"Assistant answered with {stats.total_pending} pending tasks in context"
            )
            return AssistantAnswer(answer=answer, context=stats)

    async def ask_about_task(self, task_id: int, question: str) -> AssistantAnswer:
        """Ask how to get one task done.

        Raises:
            InvalidInput: Empty question
            ServiceUnavailable: No provider configured or the call failed
            NotFound: Task does not exist
        """
        if not question or not question.strip():
            raise InvalidInput("Question is required", details={"field": "question"})
        if self.llm is None:
            raise ServiceUnavailable("AI provider is not configured")

        task = await self.session.get(Task, task_id)
        if task is None:
            raise NotFound("Task", task_id)

        with LogContext(project_id=task.project_id):
            task_context = (
                f"Task: {task.title}\n"
                f"Status: {task.status.value}\n"
                f"Priority: {task.priority.value}"
            )
            answer = await self._complete(
                TASK_SYSTEM_PROMPT,
                f"Here's the task I'm working on:\n\n{task_context}"
                f"\n\nMy question: {question.strip()}",
                self.task_max_tokens,
            )
            return AssistantAnswer(answer=answer)

    async def _tasks_by_priority(self, project_id: int) -> list[Task]:
        result = await self.session.execute(
            select(Task)
            .where(Task.project_id == project_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        # Stable sort keeps newest-first within a priority
        return sorted(result.scalars().all(), key=lambda t: _PRIORITY_RANK[t.priority])

    async def _complete(self, system_prompt: str, prompt: str, max_tokens: int) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]
        try:
            content, _ = await self.llm.generate(
                messages,
                temperature=self.temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            logger.error(f"Assistant request to {self.llm.model_name} failed: {e}")
            raise ServiceUnavailable(
                "Assistant request failed",
                details={"model": self.llm.model_name, "reason": type(e).__name__},
            ) from e

        return (content or "").strip() or NO_ANSWER
