from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Markdown structure extraction and quality scoring for tutor responses.

The formatter only normalizes; it never drops legitimate content. Code spans
and fenced blocks are shielded from every rewrite and restored verbatim.
"""

import math
import re

from .types import (
    CodeBlock,
    ContentMetadata,
    ContentType,
    HeaderInfo,
    ProcessedContent,
    QualityScore,
)

WORDS_PER_MINUTE = 200
FALLBACK_WARNING = "Used fallback processing mode - some formatting may be suboptimal"

_FILTER_PATTERNS = (
    re.compile(r"\[Content will be added shortly\]", re.IGNORECASE),
    re.compile(r"\[Response incomplete - please retry\]", re.IGNORECASE),
    re.compile(r"\[Error: Response truncated\]", re.IGNORECASE),
)
_INCOMPLETE_MARKERS = re.compile(r"\[(?:incomplete|loading|processing|wait)\]", re.IGNORECASE)

_FENCE_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
_PLACEHOLDER_RE = re.compile("\x00(\\d+)\x00")
_CODE_BLOCK_RE = re.compile(r"```(\w*)\n?([\s\S]*?)```")

_HEADER_RE = re.compile(r"^(#{1,6})\s+(.+)$")
_HEADER_TRAILING_PERIOD_RE = re.compile(r"^([^.\n]{5,})\.\s*$")
_EMOJI_RE = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF]"
)
_MARKDOWN_CHARS_RE = re.compile(r"[#*_`\[\]|]")
_MARKDOWN_SYNTAX_RE = re.compile(r"[#*_~`\[\]()]")
_BULLET_RE = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)
_NUMBERED_RE = re.compile(r"^\s*\d+\.\s+", re.MULTILINE)
_TABLE_RE = re.compile(r"^\|.+\|", re.MULTILINE)
_UNCLOSED_LINK_RE = re.compile(r"\[[^\]]*$")


def process_markdown(text: str) -> ProcessedContent:
    """
    Normalize `text` and extract its structure.

    Steps: shield code, drop known placeholder strings, normalize whitespace,
    headers and list markers, restore code, then derive metadata, quality and
    warnings from the result.
    """
    shielded, preserved = _shield_code(text)
    for pattern in _FILTER_PATTERNS:
        shielded = pattern.sub("", shielded)
    normalized = _normalize(shielded)
    content = _restore_code(normalized, preserved)

    metadata = extract_metadata(content)
    return ProcessedContent(
        content=content,
        metadata=metadata,
        quality=assess_quality(content, metadata),
        warnings=tuple(_detect_issues(content, text)),
    )


def raw_fallback(text: str, reason: str | None = None) -> ProcessedContent:
    """Minimal renderable result whose content is `text` exactly."""
    word_count = count_words(text)
    warnings = [FALLBACK_WARNING]
    if reason:
        warnings.append(reason)
    return ProcessedContent(
        content=text,
        metadata=ContentMetadata(
            is_complete=True,
            has_markdown=False,
            word_count=word_count,
            estimated_read_time_min=math.ceil(word_count / WORDS_PER_MINUTE),
            content_type="mixed",
        ),
        quality=QualityScore(
            completeness=70,
            formatting=50,
            structure=50,
            readability=60,
            overall=57,
        ),
        warnings=tuple(warnings),
        is_fallback=True,
    )


def extract_metadata(content: str) -> ContentMetadata:
    headers = parse_headers(content)
    code_blocks = parse_code_blocks(content)
    word_count = count_words(content)
    return ContentMetadata(
        is_complete=is_complete(content),
        has_markdown=bool(_MARKDOWN_CHARS_RE.search(content)),
        word_count=word_count,
        estimated_read_time_min=math.ceil(word_count / WORDS_PER_MINUTE),
        content_type=classify_content(content, headers, code_blocks),
        headers=headers,
        code_blocks=code_blocks,
    )


def assess_quality(content: str, metadata: ContentMetadata) -> QualityScore:
    completeness = 100
    formatting = 80
    structure = 70
    readability = 75

    if not metadata.is_complete:
        completeness -= 30
    if has_incomplete_indicators(content):
        completeness -= 20

    if metadata.has_markdown:
        formatting += 10
    if all(block.is_valid for block in metadata.code_blocks):
        formatting += 10

    if len(metadata.headers) >= 2:
        structure += 15
    if _has_good_hierarchy(metadata.headers):
        structure += 15

    if metadata.word_count >= 50:
        readability += 10
    if metadata.headers:
        readability += 15

    overall = round_half_up((completeness + formatting + structure + readability) / 4)
    return QualityScore(
        completeness=_clamp(completeness),
        formatting=_clamp(formatting),
        structure=_clamp(structure),
        readability=_clamp(readability),
        overall=_clamp(overall),
    )


def parse_headers(content: str) -> tuple[HeaderInfo, ...]:
    headers: list[HeaderInfo] = []
    in_fence = False
    for index, line in enumerate(content.split("\n")):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADER_RE.match(line)
        if match is None:
            continue
        text = match.group(2).strip()
        headers.append(
            HeaderInfo(
                level=len(match.group(1)),
                text=text,
                anchor=re.sub(r"[^a-z0-9]", "-", text.lower()),
                position=index,
                has_emoji=bool(_EMOJI_RE.search(text)),
            )
        )
    return tuple(headers)


def parse_code_blocks(content: str) -> tuple[CodeBlock, ...]:
    blocks: list[CodeBlock] = []
    for match in _CODE_BLOCK_RE.finditer(content):
        body = match.group(2).strip()
        blocks.append(
            CodeBlock(
                language=match.group(1) or None,
                content=body,
                is_valid=len(body) > 0,
                line_count=len(body.split("\n")),
            )
        )
    return tuple(blocks)


def count_words(content: str) -> int:
    """Count prose words, ignoring code and markdown punctuation."""
    text = _FENCE_RE.sub("", content)
    text = _INLINE_CODE_RE.sub("", text)
    text = _MARKDOWN_SYNTAX_RE.sub("", text)
    return len(text.split())


def classify_content(
    content: str,
    headers: tuple[HeaderInfo, ...],
    code_blocks: tuple[CodeBlock, ...],
) -> ContentType:
    significant_code = len(code_blocks) > 2 or any(block.line_count > 10 for block in code_blocks)
    has_lists = bool(_BULLET_RE.search(content) or _NUMBERED_RE.search(content))
    explanatory = bool(headers) and len(content) > 200

    if _TABLE_RE.search(content):
        return "table"
    if significant_code:
        return "code"
    if has_lists and not explanatory:
        return "list"
    if explanatory:
        return "explanation"
    return "mixed"


def has_incomplete_indicators(content: str) -> bool:
    return content.rstrip().endswith("...") or bool(_INCOMPLETE_MARKERS.search(content))


def is_complete(content: str) -> bool:
    return not has_incomplete_indicators(content) and count_words(content) > 10


def has_malformed_markdown(content: str) -> bool:
    """Detect constructs a renderer would leave open: fences, code spans, bold, links."""
    if content.count("```") % 2:
        return True
    prose = _FENCE_RE.sub("", content)
    if prose.count("**") % 2:
        return True
    if any(line.count("`") % 2 for line in prose.split("\n")):
        return True
    return bool(_UNCLOSED_LINK_RE.search(prose))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ----------------------------------------------------------------------
# Internals
# ----------------------------------------------------------------------


def _shield_code(text: str) -> tuple[str, list[str]]:
    preserved: list[str] = []

    def _stash(match: re.Match[str]) -> str:
        preserved.append(match.group(0))
        return f"\x00{len(preserved) - 1}\x00"

    shielded = _FENCE_RE.sub(_stash, text)
    # An unterminated fence (common mid-stream) shields everything after it.
    open_fence = shielded.find("```")
    if open_fence != -1:
        preserved.append(shielded[open_fence:])
        shielded = shielded[:open_fence] + f"\x00{len(preserved) - 1}\x00"
    shielded = _INLINE_CODE_RE.sub(_stash, shielded)
    return shielded, preserved


def _restore_code(text: str, preserved: list[str]) -> str:
    # Inline spans may wrap a fence marker, so a second pass is needed.
    for _ in range(2):
        text = _PLACEHOLDER_RE.sub(lambda m: preserved[int(m.group(1))], text)
    return text


def _normalize(text: str) -> str:
    text = re.sub(r"\n{4,}", "\n\n\n", text).strip()

    lines: list[str] = []
    last_level = 0
    for line in text.split("\n"):
        line = re.sub(r"^(#{1,6})\s{2,}", r"\1 ", line)
        line = re.sub(r"^(#{1,6})([^#\s\x00])", r"\1 \2", line)

        match = _HEADER_RE.match(line)
        if match is not None:
            level = len(match.group(1))
            title = match.group(2)
            if last_level and level > last_level + 2:
                level = min(last_level + 1, 6)
            period = _HEADER_TRAILING_PERIOD_RE.match(title)
            if period is not None:
                title = period.group(1)
            line = f"{'#' * level} {title}"
            last_level = level
        else:
            line = re.sub(r"^(\s*)[*+]\s+", r"\1- ", line)
            line = re.sub(r"^(\s*)-\s{2,}", r"\1- ", line)
            line = re.sub(r"^(\s*)(\d+)[.)]\s+", r"\1\2. ", line)
            line = re.sub(r"\*{3,}([^*]+)\*{3,}", r"**\1**", line)
        lines.append(line)
    return "\n".join(lines)


def _detect_issues(content: str, original: str) -> list[str]:
    warnings: list[str] = []
    if original:
        reduction = (len(original) - len(content)) / len(original) * 100
        if reduction > 20:
            warnings.append(f"Significant content reduction detected: {round_half_up(reduction)}%")
    if has_incomplete_indicators(content):
        warnings.append("Response may be incomplete - check for truncation")
    if has_malformed_markdown(content):
        warnings.append("Some markdown elements may not render correctly")
    return warnings


def _has_good_hierarchy(headers: tuple[HeaderInfo, ...]) -> bool:
    if len(headers) < 2:
        return False
    levels = [header.level for header in headers]
    return max(levels) - min(levels) <= 3


def _clamp(score: int) -> int:
    return max(0, min(100, score))
