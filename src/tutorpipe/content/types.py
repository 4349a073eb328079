from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines the data types produced by content formatting and validation.
"""

from dataclasses import dataclass
from typing import Literal, Protocol

ContentType = Literal["explanation", "code", "mixed", "list", "table"]


@dataclass(frozen=True, slots=True)
class HeaderInfo:
    level: int
    text: str
    anchor: str
    position: int
    has_emoji: bool = False


@dataclass(frozen=True, slots=True)
class CodeBlock:
    language: str | None
    content: str
    is_valid: bool
    line_count: int


@dataclass(frozen=True, slots=True)
class ContentMetadata:
    is_complete: bool
    has_markdown: bool
    word_count: int
    estimated_read_time_min: int
    content_type: ContentType
    headers: tuple[HeaderInfo, ...] = ()
    code_blocks: tuple[CodeBlock, ...] = ()


@dataclass(frozen=True, slots=True)
class QualityScore:
    """Formatter-side quality estimate; every field is in 0..100."""

    completeness: int
    formatting: int
    structure: int
    readability: int
    overall: int


@dataclass(frozen=True, slots=True)
class ProcessedContent:
    """
    Output of a formatting strategy.

    `content` is what a renderer should show; for raw fallbacks it is the
    accumulated text verbatim.
    """

    content: str
    metadata: ContentMetadata
    quality: QualityScore
    warnings: tuple[str, ...] = ()
    is_fallback: bool = False


@dataclass(frozen=True, slots=True)
class QualityBreakdown:
    structure: float
    formatting: float
    completeness: float
    educational: float

    def mean(self) -> float:
        return (self.structure + self.formatting + self.completeness + self.educational) / 4


@dataclass(frozen=True, slots=True)
class QualityAssessment:
    overall_score: int
    breakdown: QualityBreakdown
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """
    Result of one validation pass over accumulated content.

    Never mutated; later passes supersede it with a new instance.
    """

    is_valid: bool
    quality_score: int
    breakdown: QualityBreakdown
    warnings: tuple[str, ...] = ()
    fallback_used: bool = False
    recommendations: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def assessment(self) -> QualityAssessment:
        return QualityAssessment(
            overall_score=self.quality_score,
            breakdown=self.breakdown,
            recommendations=self.recommendations,
        )


class ContentFormatter(Protocol):
    """Pluggable formatting strategy: `(text) -> ProcessedContent`."""

    def __call__(self, text: str) -> ProcessedContent: ...


class ContentValidator(Protocol):
    """Pluggable validation strategy used by the streaming processor."""

    def __call__(
        self, raw: str, processed: ProcessedContent | None
    ) -> ValidationResult: ...
