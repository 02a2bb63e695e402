"""Tests for the rule-based analyzer, report rendering and analysis parsing."""
import pytest

from legal_assistant.services.fallback_analyzer import (
    DATES_PLACEHOLDER,
    DEFAULT_DOCUMENT_TYPE,
    FALLBACK_NOTICE,
    GENERIC_REQUIRED_INFO,
    GENERIC_RISKS,
    GENERIC_TERMS,
    PARTIES_PLACEHOLDER,
    SUMMARY_PLACEHOLDER,
    analyze_text,
    classify_document_type,
    extract_amounts,
    extract_dates,
    extract_parties,
    parse_analysis_text,
    render_report,
)

EMPLOYMENT_TEXT = (
    "This Employment Contract is between John Smith and Acme Sdn Bhd "
    "dated 1/1/2024 for RM5000 monthly salary"
)


# ---------------------------------------------------------------------------
# analyze_text
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "text",
    ["", "   ", "lorem ipsum dolor", EMPLOYMENT_TEXT, "Payment of $1,500.00 is due."],
)
def test_every_field_is_non_empty(text):
    report = analyze_text(text)
    assert report.summary
    assert report.document_type
    for field in (report.parties, report.key_terms, report.risks, report.dates, report.required_info):
        assert len(field) > 0
        assert all(item for item in field)


def test_employment_contract_end_to_end():
    report = analyze_text(EMPLOYMENT_TEXT)

    assert report.document_type == "Employment Contract"
    assert "John Smith" in report.parties
    assert report.dates == ("1/1/2024", "2024")
    assert "RM5000" in report.summary
    assert "1/1/2024" in report.summary
    assert report.summary.startswith("This is a employment contract that requires careful review.")
    assert report.summary.endswith("Please review all terms carefully before signing.")


def test_employment_wins_over_rental():
    """The employment rule comes first, so it wins even when rent keywords appear."""
    text = "The monthly salary covers rent for the tenant's housing."
    assert classify_document_type(text) == "Employment Contract"


def test_unmatched_text_uses_defaults():
    report = analyze_text("lorem ipsum dolor sit amet")

    assert report.document_type == DEFAULT_DOCUMENT_TYPE
    assert report.parties == (PARTIES_PLACEHOLDER,)
    assert report.dates == (DATES_PLACEHOLDER,)
    assert report.key_terms == GENERIC_TERMS
    assert report.risks == GENERIC_RISKS
    assert report.required_info == GENERIC_REQUIRED_INFO
    assert "Important dates" not in report.summary
    assert "financial terms" not in report.summary


def test_keyword_rules_fire_in_table_order():
    report = analyze_text("Late payment incurs a penalty. Confidential information stays secret.")
    assert report.key_terms == (
        "Payment terms and financial obligations",
        "Confidentiality and privacy provisions",
        "Penalty and breach of contract clauses",
    )
    assert report.risks == (
        "Potential financial penalties for non-compliance",
        "Confidentiality obligations and potential legal consequences",
    )


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

def test_dates_deduplicate_but_keep_distinct_formats():
    text = "Signed January 1, 2024. Renewal January 1, 2024. Review in 2024."
    assert extract_dates(text) == ["January 1, 2024", "2024"]


def test_dates_numeric_formats():
    assert extract_dates("Due 15-03-2025 or 1/2/25") == ["15-03-2025", "1/2/25", "2025"]


def test_amounts_deduplicate():
    text = "Pay $1,200.00 now and $1,200.00 later, plus RM 300 and 50 ringgit."
    assert extract_amounts(text) == ["$1,200.00", "RM 300", "50 ringgit"]


def test_amount_prefix_requires_a_digit():
    assert extract_amounts("The FORM is due. Cost in $ only.") == []


def test_parties_connector_words_removed():
    parties = extract_parties("This agreement between Ahmad Ali and Siti Aminah is binding.")
    assert parties[0] == "Ahmad Ali"
    assert all("between" not in p.lower() for p in parties)


def test_parties_are_not_deduplicated_across_patterns():
    assert extract_parties(EMPLOYMENT_TEXT) == ["John Smith", "John Smith"]


# ---------------------------------------------------------------------------
# Rendering and parsing
# ---------------------------------------------------------------------------

def test_render_report_sections_and_cap():
    report = analyze_text("Dates: 2020 2021 2022 2023 2024 2025 2026")
    rendered = render_report(report)

    for heading in (
        "### Document Summary",
        "### Document Type",
        "### Key Parties Involved",
        "### Important Terms and Conditions",
        "### Potential Risks or Concerns",
        "### Key Dates and Deadlines",
        "### Required Information for Completion",
    ):
        assert heading in rendered
    assert "- 2024" in rendered
    assert "- 2025" not in rendered  # capped at five bullets
    assert rendered.endswith(FALLBACK_NOTICE)
    assert FALLBACK_NOTICE not in render_report(report, notice=False)


def test_rendered_report_parses_back():
    report = analyze_text(EMPLOYMENT_TEXT)
    parsed = parse_analysis_text(render_report(report))

    assert parsed.summary == report.summary
    assert parsed.document_type == report.document_type
    assert parsed.parties == report.parties
    assert parsed.key_terms == report.key_terms
    assert parsed.dates == report.dates
    assert parsed.required_info == report.required_info


def test_parse_free_text_analysis():
    text = (
        "1. Document Summary: A lease for a shop lot.\n"
        "2. **Document Type**: Rental Agreement\n"
        "3. Key Parties:\n"
        "- Tan Ah Kow (landlord)\n"
        "- Lim Mei Ling (tenant)\n"
        "Potential Risks:\n"
        "* Deposit may be forfeited\n"
    )
    parsed = parse_analysis_text(text)

    assert parsed.summary == "A lease for a shop lot."
    assert parsed.document_type == "Rental Agreement"
    assert parsed.parties == ("Tan Ah Kow (landlord)", "Lim Mei Ling (tenant)")
    assert parsed.risks == ("Deposit may be forfeited",)
    assert parsed.dates == (DATES_PLACEHOLDER,)
    assert parsed.key_terms == GENERIC_TERMS


def test_parse_unstructured_text_uses_leading_paragraph():
    parsed = parse_analysis_text("This contract looks standard.\n\nNothing else to add.")
    assert parsed.summary == "This contract looks standard."
    assert parsed.document_type == DEFAULT_DOCUMENT_TYPE
    assert parse_analysis_text("").summary == SUMMARY_PLACEHOLDER
