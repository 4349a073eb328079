from __future__ import annotations

from tutorpipe.content.markdown import (
    FALLBACK_WARNING,
    count_words,
    extract_metadata,
    has_incomplete_indicators,
    has_malformed_markdown,
    process_markdown,
    raw_fallback,
)

SENTENCE = "We explain the key concept with an example because it is important."
DOC = "# Photosynthesis\n\n## How it works\n\n" + " ".join([SENTENCE] * 5)


def test_well_formed_document_scores_full_marks():
    processed = process_markdown(DOC)

    assert processed.content == DOC
    assert processed.warnings == ()
    assert processed.is_fallback is False
    quality = processed.quality
    assert (
        quality.completeness,
        quality.formatting,
        quality.structure,
        quality.readability,
        quality.overall,
    ) == (100, 100, 100, 100, 100)

    metadata = processed.metadata
    assert metadata.is_complete is True
    assert metadata.word_count == 64
    assert metadata.estimated_read_time_min == 1
    assert [(h.level, h.text) for h in metadata.headers] == [
        (1, "Photosynthesis"),
        (2, "How it works"),
    ]
    assert metadata.headers[1].anchor == "how-it-works"


def test_normalizes_headers_lists_and_blank_lines():
    text = "#Intro\n\n* one\n+ two\n1) first\n\n\n\n\n\nEnd of ***story***"

    content = process_markdown(text).content

    assert content.split("\n") == [
        "# Intro",
        "",
        "- one",
        "- two",
        "1. first",
        "",
        "",
        "End of **story**",
    ]


def test_header_jumps_and_trailing_periods_are_fixed():
    content = process_markdown("# Cells\n#### Organelles in detail.\ntext").content

    assert content.split("\n")[:2] == ["# Cells", "## Organelles in detail"]


def test_code_is_never_rewritten():
    text = (
        "Run this:\n\n"
        "```python\n"
        "*  not a list\n"
        "#not_a_header = 1\n"
        "\n\n\n\n\n"
        "print('done.')\n"
        "```\n\n"
        "Inline `* star` stays."
    )

    processed = process_markdown(text)

    assert "```python\n*  not a list\n#not_a_header = 1\n\n\n\n\n\nprint('done.')\n```" in processed.content
    assert "`* star`" in processed.content
    assert processed.metadata.code_blocks[0].language == "python"


def test_unterminated_fence_shields_the_tail():
    text = "Partial answer\n```py\n*  item\n#comment"

    processed = process_markdown(text)

    assert processed.content == text
    assert "Some markdown elements may not render correctly" in processed.warnings


def test_known_placeholder_strings_are_removed():
    content = process_markdown(
        "Mitochondria make ATP. [Content will be added shortly] More soon."
    ).content

    assert "[Content will be added shortly]" not in content
    assert content.startswith("Mitochondria make ATP.")


def test_incomplete_output_is_flagged():
    processed = process_markdown("The answer depends on several factors...")

    assert processed.metadata.is_complete is False
    assert "Response may be incomplete - check for truncation" in processed.warnings
    assert processed.quality.completeness == 50


def test_raw_fallback_keeps_text_verbatim():
    text = "  raw **unbalanced text\n\n\n\n"

    fallback = raw_fallback(text, "formatter crashed")

    assert fallback.content == text
    assert fallback.is_fallback is True
    assert fallback.warnings == (FALLBACK_WARNING, "formatter crashed")
    assert fallback.quality.overall == 57


def test_content_type_classification():
    assert extract_metadata("| a | b |\n|---|---|").content_type == "table"
    assert extract_metadata("- one\n- two").content_type == "list"
    code = "\n".join(f"```\nx = {i}\n```" for i in range(3))
    assert extract_metadata(code).content_type == "code"
    assert extract_metadata("# Topic\n\n" + "word " * 60).content_type == "explanation"
    assert extract_metadata("plain words").content_type == "mixed"


def test_malformed_markdown_detection():
    assert has_malformed_markdown("**bold") is True
    assert has_malformed_markdown("```py\nx") is True
    assert has_malformed_markdown("see [the docs") is True
    assert has_malformed_markdown("an `open span") is True
    assert has_malformed_markdown("**fine** and `code` and [link](x)") is False


def test_incomplete_indicators():
    assert has_incomplete_indicators("to be continued...") is True
    assert has_incomplete_indicators("status [Loading] here") is True
    assert has_incomplete_indicators("done.") is False


def test_count_words_ignores_code_and_markup():
    assert count_words("## Title\n\n```\nlots of code here\n```\nTwo `inline` words") == 3
