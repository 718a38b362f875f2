"""Transcribe uploaded recordings and track their processing status."""

from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models.errors import NotFound, ServiceUnavailable
from models.records import Recording, RecordingStatus
from services.llm_providers.base import BaseTranscriptionProvider
from utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class RecordingTranscriber:
    """Run speech-to-text on a recording's audio file.

    A recording moves to ``processing`` while the provider runs, then to
    ``completed`` with its transcript, or to ``failed``. Each status change
    is committed so other sessions see progress.
    """

    def __init__(
        self,
        transcriber: Optional[BaseTranscriptionProvider],
        uploads_dir: str | Path,
    ):
        self.transcriber = transcriber
        self.uploads_dir = Path(uploads_dir)

    async def transcribe_recording(
        self, session: AsyncSession, recording_id: int
    ) -> Recording:
        """Transcribe a recording and store the transcript on it.

        Raises:
            NotFound: Recording or its audio file does not exist
            ServiceUnavailable: No provider configured or the call failed
        """
        recording = await session.get(Recording, recording_id)
        if recording is None:
            raise NotFound("Recording", recording_id)
        if self.transcriber is None:
            raise ServiceUnavailable("Transcription provider is not configured")

        with LogContext(project_id=recording.project_id):
            audio_path = self.uploads_dir / recording.filename
            if not audio_path.is_file():
                logger.warning(f"Audio file missing for recording {recording_id}")
                await self._set_status(session, recording, RecordingStatus.FAILED)
                raise NotFound("Audio file", recording.filename)

            await self._set_status(session, recording, RecordingStatus.PROCESSING)
            try:
                transcript = await self.transcriber.transcribe(str(audio_path))
            except Exception as e:
                logger.error(
                    f"Transcription with {self.transcriber.model_name} failed: {e}"
                )
                await self._set_status(session, recording, RecordingStatus.FAILED)
                raise ServiceUnavailable(
                    "Transcription request failed",
                    details={
                        "model": self.transcriber.model_name,
                        "reason": type(e).__name__,
                    },
                ) from e

            recording.transcript = transcript
            await self._set_status(session, recording, RecordingStatus.COMPLETED)
            logger.info(
                f"Transcribed recording {recording_id} ({len(transcript)} chars)"
            )
            return recording

    async def _set_status(
        self, session: AsyncSession, recording: Recording, status: RecordingStatus
    ):
        recording.status = status
        await session.commit()
