"""Assessment catalog — per-type question counts, scales, and severity tables.

Definitions are seeded from YAML files (one per questionnaire type) and are
immutable once loaded. Every definition is checked when it is registered:
a threshold table that overlaps, leaves a gap, or does not cover the full
score range raises ``ConfigurationError`` here rather than at scoring time.
Adding a new questionnaire is a new YAML file, never a code change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mindtrack.domains.wellbeing.domain_logic.errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

# Packaged definitions live under src/mindtrack/domains/wellbeing/catalog/
DEFAULT_CATALOG_DIR = Path(__file__).resolve().parent.parent / "catalog"

MAX_TYPE_CODE_LENGTH = 10


@dataclass(frozen=True)
class AnswerScale:
    """Closed integer range of valid answers for one question."""

    min_value: int
    max_value: int

    def contains(self, value: int) -> bool:
        return self.min_value <= value <= self.max_value


@dataclass(frozen=True)
class SeverityThreshold:
    """Scores up to and including ``upper_bound`` (and above the previous bound) map to ``label``."""

    upper_bound: int
    label: str


@dataclass(frozen=True)
class AssessmentQuestion:
    number: int
    text: str
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class AssessmentTypeDefinition:
    """One questionnaire type: its shape, score range, and severity table."""

    code: str
    name: str
    question_count: int
    scales: tuple[AnswerScale, ...]
    min_score: int
    max_score: int
    thresholds: tuple[SeverityThreshold, ...]
    description: str = ""
    version: str = ""
    questions: tuple[AssessmentQuestion, ...] = field(default_factory=tuple)

    def severity_bands(self) -> list[dict[str, Any]]:
        """Return ``[{lower, upper, label}]`` for every bucket, ascending."""
        bands = []
        lower = self.min_score
        for threshold in self.thresholds:
            bands.append({
                "label": threshold.label,
                "lower": lower,
                "upper": threshold.upper_bound,
            })
            lower = threshold.upper_bound + 1
        return bands

    def summary(self) -> dict[str, Any]:
        """Plain dict view for tool output."""
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "question_count": self.question_count,
            "min_score": self.min_score,
            "max_score": self.max_score,
            "severity_bands": self.severity_bands(),
        }


def check_definition(definition: AssessmentTypeDefinition) -> list[str]:
    """Return every consistency problem found in a definition (empty when valid)."""
    errors: list[str] = []
    code = definition.code or "<missing code>"

    if not definition.code:
        errors.append("Missing assessment type code")
    elif len(definition.code) > MAX_TYPE_CODE_LENGTH:
        errors.append(f"{code}: code longer than {MAX_TYPE_CODE_LENGTH} characters")

    if definition.question_count < 1:
        errors.append(f"{code}: question_count must be positive")
    if len(definition.scales) != definition.question_count:
        errors.append(
            f"{code}: {len(definition.scales)} answer scales for "
            f"{definition.question_count} questions"
        )
    if definition.questions and len(definition.questions) != definition.question_count:
        errors.append(
            f"{code}: {len(definition.questions)} question texts for "
            f"{definition.question_count} questions"
        )

    for index, scale in enumerate(definition.scales, start=1):
        if scale.min_value > scale.max_value:
            errors.append(f"{code}: question {index} scale min exceeds max")
    for question, scale in zip(definition.questions, definition.scales):
        width = scale.max_value - scale.min_value + 1
        if question.options and len(question.options) != width:
            errors.append(
                f"{code}: question {question.number} has {len(question.options)} "
                f"options for a {width}-point scale"
            )

    if definition.min_score > definition.max_score:
        errors.append(f"{code}: min_score exceeds max_score")
    if definition.scales:
        lowest = sum(s.min_value for s in definition.scales)
        highest = sum(s.max_value for s in definition.scales)
        if lowest < definition.min_score or highest > definition.max_score:
            errors.append(
                f"{code}: achievable totals {lowest}-{highest} fall outside declared "
                f"range {definition.min_score}-{definition.max_score}"
            )

    # Thresholds: strictly ascending upper bounds, none below the range
    # floor, the last one exactly at the range ceiling.
    if not definition.thresholds:
        errors.append(f"{code}: no severity thresholds defined")
        return errors

    labels = [t.label for t in definition.thresholds]
    if any(not label for label in labels):
        errors.append(f"{code}: empty severity label")
    if len(set(labels)) != len(labels):
        errors.append(f"{code}: duplicate severity labels")

    previous: int | None = None
    for threshold in definition.thresholds:
        if threshold.upper_bound < definition.min_score:
            errors.append(
                f"{code}: threshold {threshold.label!r} ends below min_score "
                f"{definition.min_score}"
            )
        if previous is not None and threshold.upper_bound <= previous:
            errors.append(
                f"{code}: threshold {threshold.label!r} overlaps the previous bucket"
            )
        previous = threshold.upper_bound

    last = definition.thresholds[-1].upper_bound
    if last != definition.max_score:
        errors.append(
            f"{code}: thresholds end at {last} but max_score is {definition.max_score}"
        )
    return errors


class AssessmentCatalog:
    """In-memory, read-only lookup of assessment type definitions by code."""

    def __init__(self) -> None:
        self._definitions: dict[str, AssessmentTypeDefinition] = {}

    def register(self, definition: AssessmentTypeDefinition) -> None:
        """Add a definition after checking it.

        Raises:
            ConfigurationError: If the definition is inconsistent or the code
                is already registered.
        """
        errors = check_definition(definition)
        if errors:
            raise ConfigurationError("; ".join(errors))
        if definition.code.upper() in self._definitions:
            raise ConfigurationError(f"Duplicate assessment type code: {definition.code!r}")
        self._definitions[definition.code.upper()] = definition

    def get(self, code: str) -> AssessmentTypeDefinition | None:
        """Look up a definition by code (case-insensitive)."""
        return self._definitions.get(code.upper())

    def require(self, code: str) -> AssessmentTypeDefinition:
        """Look up a definition, raising ``ValidationError`` for unknown codes."""
        definition = self.get(code)
        if definition is None:
            raise ValidationError(
                f"Unknown assessment type: {code!r}. Valid: {sorted(self._definitions)}",
                field="assessment_type_code",
                value=code,
            )
        return definition

    def codes(self) -> list[str]:
        return sorted(self._definitions)

    def all(self) -> list[AssessmentTypeDefinition]:
        """Return all definitions ordered by code."""
        return [self._definitions[code] for code in self.codes()]

    def __len__(self) -> int:
        return len(self._definitions)


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def load_catalog_file(path: Path) -> AssessmentTypeDefinition:
    """Parse one YAML file into an AssessmentTypeDefinition.

    Raises:
        ConfigurationError: If the file is unreadable or lacks required keys.
    """
    try:
        with open(path) as f:
            data: dict[str, Any] = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"{path}: failed to read catalog file: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: catalog file must contain a mapping")

    try:
        question_count = int(data["question_count"])
        default_scale = data.get("scale", {})
        default_options = tuple(data.get("options", []))

        scales: list[AnswerScale] = []
        questions: list[AssessmentQuestion] = []
        for number, item in enumerate(data.get("questions", []), start=1):
            scale_data = item.get("scale", default_scale)
            scales.append(AnswerScale(int(scale_data["min"]), int(scale_data["max"])))
            questions.append(AssessmentQuestion(
                number=number,
                text=str(item["text"]).strip(),
                options=tuple(item.get("options", default_options)),
            ))
        if not questions:
            # Definitions without question content share one scale.
            scales = [
                AnswerScale(int(default_scale["min"]), int(default_scale["max"]))
            ] * question_count

        return AssessmentTypeDefinition(
            code=str(data["code"]).upper(),
            name=data["name"],
            description=str(data.get("description", "")).strip(),
            version=str(data.get("version", "")),
            question_count=question_count,
            scales=tuple(scales),
            min_score=int(data["min_score"]),
            max_score=int(data["max_score"]),
            thresholds=tuple(
                SeverityThreshold(int(t["upper_bound"]), str(t["label"]))
                for t in data["thresholds"]
            ),
            questions=tuple(questions),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"{path}: malformed catalog entry: {exc!r}") from exc


def load_catalog_directory(directory: str | Path, catalog: AssessmentCatalog) -> int:
    """Load and register every YAML definition in a directory.

    Files starting with an underscore are skipped. Unlike optional content,
    a broken catalog file is fatal: the error propagates.

    Returns the number of definitions loaded.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigurationError(f"Catalog directory does not exist: {directory}")

    count = 0
    for path in sorted(directory.glob("*.yaml")):
        if path.name.startswith("_"):
            continue
        definition = load_catalog_file(path)
        catalog.register(definition)
        count += 1
        logger.info("Loaded assessment type: %s (v%s)", definition.code, definition.version)
    return count


def load_default_catalog(directory: str | Path | None = None) -> AssessmentCatalog:
    """Build a catalog from ``directory`` or the packaged definitions."""
    catalog = AssessmentCatalog()
    load_catalog_directory(directory or DEFAULT_CATALOG_DIR, catalog)
    return catalog
