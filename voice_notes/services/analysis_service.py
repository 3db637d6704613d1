# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Analysis stage: transcript to clinical summary and follow-up checklist."""
import logging
from typing import Optional, Protocol
from uuid import UUID

from openai import APIError, AsyncOpenAI
from pydantic import ValidationError as PydanticValidationError

from voice_notes.exceptions import (
    AnalysisError,
    EngineError,
    InvalidTransitionError,
    StaleRunError,
)
from voice_notes.models.api.analysis_schema import AnalysisPayload
from voice_notes.models.status import VoiceNoteStatus
from voice_notes.repositories import VoiceNoteRepository
from voice_notes.services.stage_base import PipelineStage

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """You are a medical assistant specialised in reviewing clinical records.
Analyse the transcription of the doctor's audio note and extract:

1. CLINICAL SUMMARY
- Chief complaint
- Reported symptoms
- Notable observations
- Decisions made

2. ACTION CHECKLIST
For every follow-up action identified, give:
- title: short action title
- description: detailed description (optional)
- type: one of exam, medication, referral, followup
- status: always "pending"
- dueDate: deadline as YYYY-MM-DD, only if one is mentioned

Keep the exact medical terminology and write the summary in the language of the transcription.

Return only a JSON object with exactly this structure:
{
  "summary": "clinical summary text",
  "checklist": [
    {
      "title": "action title",
      "description": "detailed description or null",
      "type": "exam|medication|referral|followup",
      "status": "pending",
      "dueDate": "YYYY-MM-DD or null"
    }
  ]
}"""


class TextGenerationEngine(Protocol):
    async def complete(self, system_prompt: str, user_content: str) -> str: ...


class OpenAITextGenerationEngine:
    """Text generation through OpenAI chat completions in JSON mode."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.1,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
    ):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)
        self.model = model
        self.temperature = temperature

    async def complete(self, system_prompt: str, user_content: str) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except APIError as e:
            raise EngineError(f"Text generation request failed: {e}") from e

        if not completion.choices:
            raise EngineError("Text generation returned no choices")
        return completion.choices[0].message.content or ""


def parse_analysis_payload(raw: str) -> AnalysisPayload:
    """
    Strictly parse engine output into an ``AnalysisPayload``.

    The whole output must be one JSON object matching the schema exactly.
    Surrounding prose or markdown fences are rejected, not stripped.

    Raises:
        AnalysisError: If the output is not valid JSON or violates the schema
    """
    if not isinstance(raw, str) or not raw.strip():
        raise AnalysisError("Text generation returned empty output")

    try:
        return AnalysisPayload.model_validate_json(raw.strip())
    except PydanticValidationError as e:
        raise AnalysisError(
            f"Analysis output failed validation: {e.error_count()} error(s): "
            f"{e.errors(include_url=False, include_input=False)}"
        ) from e


class AnalysisStage(PipelineStage):
    """Turns a TRANSCRIBED note into a summary plus checklist."""

    name = "analysis"

    def __init__(
        self,
        session_factory,
        engine: TextGenerationEngine,
        system_prompt: str = ANALYSIS_SYSTEM_PROMPT,
        **kwargs,
    ):
        super().__init__(session_factory, **kwargs)
        self.engine = engine
        self.system_prompt = system_prompt

    async def analyze(self, voice_note_id: UUID) -> AnalysisPayload:
        """
        Analyze a transcribed note and move it to ANALYZED.

        The summary and every checklist item are written in one transaction,
        so a failure leaves zero items behind.

        Args:
            voice_note_id: Note to analyze; must be TRANSCRIBED

        Returns:
            The validated payload that was persisted

        Raises:
            AnalysisError: On any failure. Failures after the precondition
                check also move the note to ERROR.
            StaleRunError: If another run analyzed the note first; nothing is
                written.
        """
        note = await self._load(voice_note_id)
        if note is None:
            raise AnalysisError("Voice note not found", voice_note_id)
        if note.status != VoiceNoteStatus.TRANSCRIBED.value:
            raise AnalysisError(
                f"Voice note is {note.status}, expected {VoiceNoteStatus.TRANSCRIBED.value}",
                voice_note_id,
            )
        try:
            if not note.transcription:
                raise AnalysisError("Voice note has no transcription", voice_note_id)
            payload = await self._generate(voice_note_id, note.transcription)
            await self._store_analysis(voice_note_id, payload)
        except AnalysisError as e:
            logger.warning(f"Analysis failed for voice note {voice_note_id}: {e}")
            await self.mark_error(voice_note_id, str(e))
            raise

        logger.info(
            f"Voice note {voice_note_id} analyzed with {len(payload.checklist)} checklist item(s)"
        )
        return payload

    async def _generate(self, voice_note_id: UUID, transcription: str) -> AnalysisPayload:
        try:
            raw = await self._call_engine(
                lambda: self.engine.complete(self.system_prompt, transcription)
            )
        except EngineError as e:
            raise AnalysisError(str(e), voice_note_id) from e

        try:
            return parse_analysis_payload(raw)
        except AnalysisError as e:
            e.voice_note_id = voice_note_id
            raise

    async def _store_analysis(self, voice_note_id: UUID, payload: AnalysisPayload) -> None:
        async with self.session_factory() as db:
            repo = VoiceNoteRepository(db)
            note = await repo.get_for_update(voice_note_id)
            if note is None:
                raise AnalysisError("Voice note disappeared during analysis", voice_note_id)
            try:
                await repo.transition(note, VoiceNoteStatus.ANALYZED, summary=payload.summary)
            except InvalidTransitionError as e:
                raise StaleRunError(
                    f"Analysis discarded, note already moved on: {e}", voice_note_id, self.name
                ) from e
            await repo.add_checklist_items(note, payload.checklist)
            await db.commit()
