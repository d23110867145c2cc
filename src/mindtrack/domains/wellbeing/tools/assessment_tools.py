"""MCP tools for questionnaire assessments.

Catalog tools (type listing, question content) work without storage.
Submission, lookup, draft, and history tools use the encrypted record store.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError
from mindtrack.domains.wellbeing.domain_logic.scoring import (
    create_assessment_draft,
    create_assessment_record,
)
from mindtrack.domains.wellbeing.domain_logic.trend_analyzer import time_range_bounds
from mindtrack.domains.wellbeing.domain_logic.validation import normalize_timestamp

if TYPE_CHECKING:
    from mindtrack.core.storage.models import AssessmentDraft, AssessmentRecord
    from mindtrack.core.storage.repository import WellbeingRepository
    from mindtrack.domains.wellbeing.domain_logic.catalog import AssessmentCatalog

logger = logging.getLogger(__name__)


def _error(message: str, **extra) -> str:
    return json.dumps({"status": "error", "message": message, **extra})


def _record_dict(record: AssessmentRecord) -> dict:
    return {
        "id": record.id,
        "assessment_type_code": record.assessment_type_code,
        "total_score": record.total_score,
        "severity_label": record.severity_label,
        "completed_at": record.completed_at,
        "responses": list(record.responses),
        "notes": record.notes,
    }


def _draft_dict(draft: AssessmentDraft) -> dict:
    return {
        "id": draft.id,
        "assessment_type_code": draft.assessment_type_code,
        "responses": list(draft.responses),
        "answered": draft.answered_count,
        "question_count": len(draft.responses),
        "notes": draft.notes,
        "created_at": draft.created_at,
        "updated_at": draft.updated_at,
    }


def register_assessment_catalog_tools(mcp: FastMCP, catalog: AssessmentCatalog) -> None:
    """Register read-only catalog tools on the MCP server."""

    @mcp.tool
    async def list_assessment_types(ctx: Context) -> str:
        """List the available questionnaires with their score ranges and severity bands."""
        return json.dumps(
            {"assessment_types": [d.summary() for d in catalog.all()]},
            indent=2,
        )

    @mcp.tool
    async def get_assessment_questions(ctx: Context, assessment_type_code: str) -> str:
        """Return the questions and answer options for one questionnaire.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9', 'GAD7', 'CESD', 'OASIS').
        """
        try:
            definition = catalog.require(assessment_type_code)
        except ValidationError as exc:
            return _error(str(exc), field=exc.field)

        return json.dumps({
            "assessment_type_code": definition.code,
            "name": definition.name,
            "description": definition.description,
            "questions": [
                {
                    "number": q.number,
                    "text": q.text,
                    "min": scale.min_value,
                    "max": scale.max_value,
                    "options": list(q.options),
                }
                for q, scale in zip(definition.questions, definition.scales)
            ],
        }, indent=2)


def register_assessment_tools(
    mcp: FastMCP,
    catalog: AssessmentCatalog,
    repository: WellbeingRepository,
    tz: tzinfo | None = None,
) -> None:
    """Register assessment submission, lookup, draft, and history tools."""

    @mcp.tool
    async def submit_assessment(
        ctx: Context,
        assessment_type_code: str,
        responses: list[int],
        notes: str = "",
        completed_at: str = "",
    ) -> str:
        """Score a completed questionnaire and save it to your record store.

        Any saved draft for the same questionnaire is discarded.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
            responses: One integer answer per question, in question order.
            notes: Optional free-text note (max 5000 characters).
            completed_at: Completion time (ISO 8601). Defaults to now; a
                time without an offset is local time.
        """
        try:
            definition = catalog.require(assessment_type_code)
            record = create_assessment_record(
                definition,
                responses,
                completed_at=normalize_timestamp(
                    completed_at,
                    field="completed_at",
                    default=datetime.now(timezone.utc),
                    tz=tz,
                ),
                notes=notes or None,
            )
        except ValidationError as exc:
            return _error(str(exc), field=exc.field)

        rid = repository.save_assessment(record)
        draft_discarded = repository.delete_draft(record.assessment_type_code)
        return json.dumps({
            "status": "saved",
            "assessment_id": rid,
            "assessment_type_code": record.assessment_type_code,
            "total_score": record.total_score,
            "severity_label": record.severity_label,
            "completed_at": record.completed_at,
            "draft_discarded": draft_discarded,
        })

    @mcp.tool
    async def get_assessment(ctx: Context, assessment_id: str) -> str:
        """Return one saved assessment result with its answers and notes.

        Args:
            assessment_id: The ID returned when the assessment was submitted.
        """
        record = repository.get_assessment(assessment_id)
        if record is None:
            return _error(f"Assessment not found: {assessment_id}")
        return json.dumps({"assessment": _record_dict(record)}, indent=2)

    @mcp.tool
    async def latest_assessment(ctx: Context, assessment_type_code: str) -> str:
        """Return the most recent result for one questionnaire.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
        """
        try:
            definition = catalog.require(assessment_type_code)
        except ValidationError as exc:
            return _error(str(exc), field=exc.field)

        record = repository.get_latest_assessment(definition.code)
        if record is None:
            return json.dumps({
                "status": "no_data",
                "assessment_type_code": definition.code,
                "message": f"No {definition.code} results recorded yet.",
            })
        return json.dumps({"assessment": _record_dict(record)}, indent=2)

    @mcp.tool
    async def save_assessment_draft(
        ctx: Context,
        assessment_type_code: str,
        responses: list[int | None],
        notes: str = "",
    ) -> str:
        """Save a partly answered questionnaire to finish later.

        One draft is kept per questionnaire; saving again replaces it.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
            responses: Answers in question order; null (or a short list)
                marks questions not answered yet.
            notes: Optional free-text note (max 5000 characters).
        """
        try:
            definition = catalog.require(assessment_type_code)
            draft = create_assessment_draft(definition, responses, notes=notes or None)
        except ValidationError as exc:
            return _error(str(exc), field=exc.field)

        saved = repository.save_draft(draft)
        return json.dumps({"status": "saved", "draft": _draft_dict(saved)})

    @mcp.tool
    async def get_assessment_draft(ctx: Context, assessment_type_code: str) -> str:
        """Return the saved draft for one questionnaire, if there is one.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
        """
        try:
            definition = catalog.require(assessment_type_code)
        except ValidationError as exc:
            return _error(str(exc), field=exc.field)

        draft = repository.get_draft(definition.code)
        if draft is None:
            return _error(f"No draft saved for {definition.code}")
        return json.dumps({"draft": _draft_dict(draft)}, indent=2)

    @mcp.tool
    async def list_assessment_drafts(ctx: Context) -> str:
        """List saved drafts, most recently edited first."""
        drafts = repository.list_drafts()
        return json.dumps({
            "count": len(drafts),
            "drafts": [_draft_dict(d) for d in drafts],
        }, indent=2)

    @mcp.tool
    async def discard_assessment_draft(ctx: Context, assessment_type_code: str) -> str:
        """Delete the saved draft for one questionnaire.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'PHQ9').
        """
        code = assessment_type_code.strip().upper()
        if repository.delete_draft(code):
            return json.dumps({"status": "deleted", "assessment_type_code": code})
        return _error(f"No draft saved for {code}")

    @mcp.tool
    async def assessment_history(
        ctx: Context,
        assessment_type_code: str,
        time_range: str = "all",
        limit: int = 100,
    ) -> str:
        """List past results for one questionnaire, oldest first.

        Args:
            assessment_type_code: Questionnaire code (e.g., 'GAD7').
            time_range: One of 'week', 'month', 'quarter', 'year', 'all'.
            limit: Maximum number of results (capped at 1000).
        """
        try:
            definition = catalog.require(assessment_type_code)
            since, until = time_range_bounds(time_range, datetime.now(timezone.utc))
        except ValidationError as exc:
            return _error(str(exc), field=exc.field)

        records = repository.get_assessment_history(
            definition.code,
            since=since.isoformat() if since else None,
            until=until.isoformat() if until else None,
            limit=limit,
        )
        return json.dumps({
            "assessment_type_code": definition.code,
            "count": len(records),
            "results": [_record_dict(r) for r in records],
        }, indent=2)

    @mcp.tool
    async def delete_assessment(ctx: Context, assessment_id: str) -> str:
        """Permanently delete one assessment result.

        Args:
            assessment_id: The ID returned when the assessment was submitted.
        """
        if repository.delete_assessment(assessment_id):
            return json.dumps({"status": "deleted", "assessment_id": assessment_id})
        return _error(f"Assessment not found: {assessment_id}")
