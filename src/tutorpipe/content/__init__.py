"""
Content formatting and validation exports.
"""

from .markdown import (
    FALLBACK_WARNING,
    assess_quality,
    count_words,
    extract_metadata,
    has_incomplete_indicators,
    has_malformed_markdown,
    process_markdown,
    raw_fallback,
)
from .types import (
    CodeBlock,
    ContentFormatter,
    ContentMetadata,
    ContentType,
    ContentValidator,
    HeaderInfo,
    ProcessedContent,
    QualityAssessment,
    QualityBreakdown,
    QualityScore,
    ValidationResult,
)
from .validator import ValidationOptions, is_valid_content, quality_metrics, validate_content

__all__ = [
    "process_markdown",
    "raw_fallback",
    "extract_metadata",
    "assess_quality",
    "count_words",
    "has_incomplete_indicators",
    "has_malformed_markdown",
    "FALLBACK_WARNING",
    "validate_content",
    "is_valid_content",
    "quality_metrics",
    "ValidationOptions",
    "ContentFormatter",
    "ContentValidator",
    "ContentType",
    "HeaderInfo",
    "CodeBlock",
    "ContentMetadata",
    "QualityScore",
    "ProcessedContent",
    "QualityBreakdown",
    "QualityAssessment",
    "ValidationResult",
]
