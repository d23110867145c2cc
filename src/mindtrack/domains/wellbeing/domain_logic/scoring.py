"""Assessment scoring: validated totals and severity labels.

Table-driven: the engine knows nothing about individual questionnaires.
Everything type-specific (question count, answer scales, severity buckets)
comes from the AssessmentTypeDefinition handed in by the caller.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from mindtrack.core.storage.models import AssessmentDraft, AssessmentRecord
from mindtrack.domains.wellbeing.domain_logic.catalog import AssessmentTypeDefinition
from mindtrack.domains.wellbeing.domain_logic.errors import ValidationError
from mindtrack.domains.wellbeing.domain_logic.validation import validate_notes


@dataclass(frozen=True)
class ScoringResult:
    """Outcome of scoring one response vector."""

    assessment_type_code: str
    total_score: int
    severity_label: str

    def as_dict(self) -> dict[str, int | str]:
        return {
            "assessment_type_code": self.assessment_type_code,
            "total_score": self.total_score,
            "severity_label": self.severity_label,
        }


def validate_responses(
    definition: AssessmentTypeDefinition,
    responses: Sequence[int],
) -> None:
    """Check length and per-question range of a response vector.

    Raises:
        ValidationError: On a length mismatch, a non-integer answer, or an
            answer outside its question's scale.
    """
    if len(responses) != definition.question_count:
        raise ValidationError(
            f"{definition.code} expects {definition.question_count} responses, "
            f"got {len(responses)}",
            field="responses",
            value=len(responses),
        )
    for number, (answer, scale) in enumerate(zip(responses, definition.scales), start=1):
        # bool is an int subclass; True/False are not answers.
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise ValidationError(
                f"{definition.code} question {number}: answer must be an integer",
                field=f"responses[{number - 1}]",
                value=answer,
            )
        if not scale.contains(answer):
            raise ValidationError(
                f"{definition.code} question {number}: answer {answer} outside "
                f"{scale.min_value}-{scale.max_value}",
                field=f"responses[{number - 1}]",
                value=answer,
            )


def severity_for(definition: AssessmentTypeDefinition, total: int) -> str:
    """Return the label of the first bucket whose upper bound is >= total.

    The catalog guarantees the buckets are contiguous and end at
    ``max_score``, so any in-range total matches exactly one bucket.
    """
    return next(t.label for t in definition.thresholds if t.upper_bound >= total)


def score_responses(
    definition: AssessmentTypeDefinition,
    responses: Sequence[int],
) -> ScoringResult:
    """Validate a response vector and compute its total and severity.

    Pure and deterministic; safe to call from any number of threads.

    Args:
        definition: Catalog entry for the questionnaire that was answered.
        responses: One integer answer per question, in question order.

    Returns:
        ScoringResult with the summed total and its severity label.

    Raises:
        ValidationError: If the vector does not fit the definition.
    """
    validate_responses(definition, responses)
    total = sum(responses)
    return ScoringResult(
        assessment_type_code=definition.code,
        total_score=total,
        severity_label=severity_for(definition, total),
    )


def create_assessment_record(
    definition: AssessmentTypeDefinition,
    responses: Sequence[int],
    *,
    completed_at: str,
    notes: str | None = None,
    record_id: str = "",
) -> AssessmentRecord:
    """Score a response vector and wrap it in an immutable record.

    The record is only built once validation has passed, so every stored
    record carries a total inside the type's range and its unique label.
    """
    validate_notes(notes)
    result = score_responses(definition, responses)
    return AssessmentRecord(
        id=record_id or str(uuid.uuid4()),
        assessment_type_code=result.assessment_type_code,
        responses=tuple(responses),
        total_score=result.total_score,
        severity_label=result.severity_label,
        completed_at=completed_at,
        notes=notes or None,
    )


def create_assessment_draft(
    definition: AssessmentTypeDefinition,
    responses: Sequence[int | None],
    *,
    notes: str | None = None,
) -> AssessmentDraft:
    """Validate a partly answered questionnaire for saving as a draft.

    Shorter vectors are padded with None; answered entries must fit their
    question's scale. Nothing is scored until the questionnaire is submitted.

    Raises:
        ValidationError: If the vector is too long or an answer is out of range.
    """
    validate_notes(notes)
    if len(responses) > definition.question_count:
        raise ValidationError(
            f"{definition.code} has {definition.question_count} questions, "
            f"got {len(responses)} responses",
            field="responses",
            value=len(responses),
        )
    padded = list(responses) + [None] * (definition.question_count - len(responses))
    for number, (answer, scale) in enumerate(zip(padded, definition.scales), start=1):
        if answer is None:
            continue
        if isinstance(answer, bool) or not isinstance(answer, int) or not scale.contains(answer):
            raise ValidationError(
                f"{definition.code} question {number}: answer {answer!r} outside "
                f"{scale.min_value}-{scale.max_value}",
                field=f"responses[{number - 1}]",
                value=answer,
            )
    return AssessmentDraft(
        id="",
        assessment_type_code=definition.code,
        responses=tuple(padded),
        notes=notes or None,
    )
