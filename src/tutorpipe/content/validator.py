from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Content validation and quality assessment for tutor responses.
"""

import logging
import re
from dataclasses import dataclass

from .markdown import round_half_up
from .types import ProcessedContent, QualityAssessment, QualityBreakdown, ValidationResult

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 5
MINIMAL_STRUCTURE_WARNING = "No processed content available, using minimal structure"
MINIMAL_STRUCTURE_RECOMMENDATION = (
    "Minimal processing applied - consider enabling full markdown processing"
)

_ERROR_PATTERNS = (
    re.compile(r"I apologize.*error", re.IGNORECASE),
    re.compile(r"unable to.*provide", re.IGNORECASE),
    re.compile(r"something went wrong", re.IGNORECASE),
    re.compile(r"\[error\]", re.IGNORECASE),
    re.compile(r"\[placeholder\]", re.IGNORECASE),
)
_INCOMPLETE_PATTERNS = (
    re.compile(r"\.\.\.$"),
    re.compile(r"\[(?:incomplete|loading|processing)\]", re.IGNORECASE),
)
_EDUCATIONAL_PATTERNS = (
    re.compile(
        r"\b(explain|understand|learn|concept|example|because|therefore|however|moreover)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(step|process|method|approach|technique|strategy)\b", re.IGNORECASE),
    re.compile(r"\b(important|key|essential|fundamental|basic|advanced)\b", re.IGNORECASE),
)
_EXAMPLE_RE = re.compile(r"\b(example|for instance|such as|like|consider)\b", re.IGNORECASE)
_LIST_RE = re.compile(r"^(?:[-*+]|\d+\.)\s+", re.MULTILINE)
_HEADER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class ValidationOptions:
    require_educational_content: bool = True
    min_word_count: int = 10
    max_word_count: int = 5000


@dataclass(frozen=True, slots=True)
class _CheckResult:
    score: int
    failures: tuple[str, ...]

    @property
    def passed(self) -> bool:
        return not self.failures


def validate_content(
    raw: str,
    processed: ProcessedContent | None = None,
    options: ValidationOptions | None = None,
) -> ValidationResult:
    """
    Validate accumulated text and score its quality.

    With `processed` the formatter's quality estimate seeds the breakdown;
    without it a minimal structure is derived from `raw` and the result is
    flagged `fallback_used`. Basic content checks shave up to 30% of the missing
    score off every sub-score and educational checks shave 20% off the
    educational sub-score; the composite score is the mean of the breakdown.
    """
    options = options or ValidationOptions()
    warnings: list[str] = []

    if processed is not None:
        base, recommendations, content, has_headers = _from_processed(processed)
        warnings.extend(processed.warnings)
        fallback_used = False
    else:
        base, recommendations, content, has_headers = _minimal_structure(raw)
        warnings.append(MINIMAL_STRUCTURE_WARNING)
        fallback_used = True

    content_check = _check_content(raw, options)
    educational_check = (
        _check_educational(content, has_headers)
        if options.require_educational_content
        else None
    )

    structure = base.structure
    formatting = base.formatting
    completeness = base.completeness
    educational = base.educational

    if not content_check.passed:
        penalty = (100 - content_check.score) * 0.3
        structure = max(0.0, structure - penalty)
        formatting = max(0.0, formatting - penalty)
        completeness = max(0.0, completeness - penalty)
        educational = max(0.0, educational - penalty)

    if educational_check is not None and not educational_check.passed:
        penalty = (100 - educational_check.score) * 0.2
        educational = max(0.0, educational - penalty)

    breakdown = QualityBreakdown(
        structure=structure,
        formatting=formatting,
        completeness=completeness,
        educational=educational,
    )

    recommendations.extend(content_check.failures[:2])
    if educational_check is not None:
        recommendations.extend(educational_check.failures[:2])

    errors = content_check.failures + (
        educational_check.failures if educational_check is not None else ()
    )
    is_valid = content_check.passed and (
        educational_check is None or educational_check.passed
    )
    if not is_valid:
        logger.debug("Content failed %d validation check(s)", len(errors))

    return ValidationResult(
        is_valid=is_valid,
        quality_score=round_half_up(breakdown.mean()),
        breakdown=breakdown,
        warnings=tuple(warnings),
        fallback_used=fallback_used,
        recommendations=tuple(recommendations[:MAX_RECOMMENDATIONS]),
        errors=errors,
    )


def is_valid_content(raw: str, options: ValidationOptions | None = None) -> bool:
    return validate_content(raw, None, options).is_valid


def quality_metrics(
    raw: str, processed: ProcessedContent | None = None
) -> QualityAssessment:
    return validate_content(raw, processed).assessment


def count_words(content: str) -> int:
    return len(content.split())


def _from_processed(
    processed: ProcessedContent,
) -> tuple[QualityBreakdown, list[str], str, bool]:
    quality = processed.quality
    breakdown = QualityBreakdown(
        structure=float(quality.structure),
        formatting=float(quality.formatting),
        completeness=float(quality.completeness),
        educational=float(min(quality.readability + 10, 100)),
    )
    recommendations = (
        list(processed.warnings[:3])
        if processed.warnings
        else ["Content processed successfully"]
    )
    return (
        breakdown,
        recommendations,
        processed.content,
        bool(processed.metadata.headers),
    )


def _minimal_structure(raw: str) -> tuple[QualityBreakdown, list[str], str, bool]:
    word_count = count_words(raw)
    has_code = "```" in raw
    has_headers = bool(_HEADER_RE.search(raw))
    breakdown = QualityBreakdown(
        structure=70.0 if has_headers else 50.0,
        formatting=70.0 if has_code or has_headers else 50.0,
        completeness=70.0 if word_count > 50 else 40.0,
        educational=60.0 if word_count > 100 else 40.0,
    )
    return breakdown, [MINIMAL_STRUCTURE_RECOMMENDATION], raw, has_headers


def _check_content(content: str, options: ValidationOptions) -> _CheckResult:
    failures: list[str] = []
    score = 100

    word_count = count_words(content)
    if word_count < options.min_word_count:
        failures.append(
            f"Content too short: {word_count} words (minimum: {options.min_word_count})"
        )
        score -= 20
    if word_count > options.max_word_count:
        failures.append(
            f"Content too long: {word_count} words (maximum: {options.max_word_count})"
        )
        score -= 10

    if not content.strip():
        failures.append("Content is empty")
        score = 0

    if any(pattern.search(content) for pattern in _ERROR_PATTERNS):
        failures.append("Content appears to contain error messages")
        score -= 30

    if any(pattern.search(content) for pattern in _INCOMPLETE_PATTERNS):
        failures.append("Content appears to be incomplete")
        score -= 15

    return _CheckResult(score=max(0, score), failures=tuple(failures))


def _check_educational(content: str, has_headers: bool) -> _CheckResult:
    failures: list[str] = []
    score = 100
    word_count = count_words(content)

    if word_count < 50:
        failures.append("Content too short for educational value")
        score -= 25

    indicators = sum(len(pattern.findall(content)) for pattern in _EDUCATIONAL_PATTERNS)
    if indicators < 3:
        failures.append("Insufficient educational language and structure")
        score -= 20

    if not _EXAMPLE_RE.search(content) and word_count > 100:
        failures.append("No examples or illustrations provided")
        score -= 15

    has_structure = has_headers or bool(_LIST_RE.search(content))
    if not has_structure and word_count > 150:
        failures.append("Content lacks clear structure")
        score -= 10

    return _CheckResult(score=max(0, score), failures=tuple(failures))
