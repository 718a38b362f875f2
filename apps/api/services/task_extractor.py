"""Extract actionable tasks from recording transcripts."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models.errors import InvalidInput, NotFound, ServiceUnavailable
from models.records import Recording, TaskPriority
from models.schemas import ImportMode, ReconcileResult, TaskEntry
from services.llm_providers.base import BaseLLMProvider
from services.reconciler import TaskReconciler
from utils.json_extraction import extract_json_from_response
from utils.logging import get_logger

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 200

EXTRACTION_SYSTEM_PROMPT = """You are a task extraction assistant. Analyze the transcript of a conversation or meeting and extract concrete, actionable tasks.

Rules:
- Extract only clear, specific tasks that were mentioned or implied
- Each task should be a single, actionable item
- Assign priority based on urgency/importance mentioned in the conversation:
  - "high": urgent, critical, blocking, ASAP
  - "medium": important but not urgent (default)
  - "low": nice-to-have, someday, low priority
- If no clear tasks are found, return an empty array
- Keep task titles concise but descriptive (max 100 chars)

Return ONLY valid JSON array, no markdown, no explanation.
Format: [{"title": "Task description", "priority": "low|medium|high"}]"""


def sanitize_extracted_tasks(data) -> list[TaskEntry]:
    """Keep entries with a string title; clamp titles and default priorities."""
    if not isinstance(data, list):
        return []

    priorities = {p.value for p in TaskPriority}
    tasks = []
    for item in data:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            continue
        priority = item.get("priority")
        tasks.append(
            TaskEntry(
                title=title.strip()[:MAX_TITLE_LENGTH],
                priority=priority if priority in priorities else TaskPriority.MEDIUM,
            )
        )
    return tasks


class TaskExtractor:
    """Turn free text into task entries using the text generation provider."""

    def __init__(
        self,
        llm: Optional[BaseLLMProvider],
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ):
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def extract_from_transcript(self, transcript: str) -> list[TaskEntry]:
        """Ask the model for tasks mentioned in a transcript.

        Raises:
            InvalidInput: Empty transcript
            ServiceUnavailable: No provider configured or the call failed
        """
        if not transcript or not transcript.strip():
            raise InvalidInput("Transcript is empty", details={"field": "transcript"})
        if self.llm is None:
            raise ServiceUnavailable("AI provider is not configured")

        messages = [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Extract tasks from this transcript:\n\n{transcript}",
            },
        ]
        try:
            content, _ = await self.llm.generate(
                messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"Task extraction with {self.llm.model_name} failed: {e}")
            raise ServiceUnavailable(
                "Task extraction request failed",
                details={"model": self.llm.model_name, "reason": type(e).__name__},
            ) from e

        data = extract_json_from_response(content, context="task_extraction")
        tasks = sanitize_extracted_tasks(data)
        logger.info(f"Extracted {len(tasks)} tasks from transcript")
        return tasks

    async def import_recording_tasks(
        self,
        session: AsyncSession,
        reconciler: TaskReconciler,
        recording_id: int,
        mode: ImportMode | str = ImportMode.MERGE,
    ) -> ReconcileResult:
        """Extract tasks from a recording's transcript into its project.

        Created tasks are linked to the recording.

        Raises:
            NotFound: Recording does not exist
            InvalidInput: Recording has no transcript yet
        """
        recording = await session.get(Recording, recording_id)
        if recording is None:
            raise NotFound("Recording", recording_id)
        if not recording.transcript or not recording.transcript.strip():
            raise InvalidInput(
                "Recording has no transcript",
                details={"recording_id": recording_id},
            )

        tasks = await self.extract_from_transcript(recording.transcript)
        return await reconciler.reconcile(
            recording.project_id,
            tasks,
            mode=mode,
            recording_id=recording.id,
        )
