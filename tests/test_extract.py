"""
Tests for the extract module.

Tests cover:
- Generic degree, duration, tuition and delivery rules
- Curriculum highlight selection and truncation
- Accreditation placeholder
- Override strategies and the strategy registry
- Totality on empty and malformed markup
"""

import pytest

from program_enricher.extract import (
    ACCREDITATION_PLACEHOLDER,
    DEFAULT_STRATEGY,
    STRATEGY_REGISTRY,
    ConstantStrategy,
    ExtractedFields,
    GenericStrategy,
    PageContent,
    extract_cost_per_credit,
    extract_curriculum_highlights,
    extract_degree_type,
    extract_delivery_mode,
    extract_duration,
    extract_fields,
    extract_total_tuition,
    get_strategy,
    register_strategy,
    truncate_highlight,
)


GENERIC = "Example State University"


class TestDegreeType:
    """Tests for degree type extraction."""

    def test_dotted_abbreviation(self):
        """Test that a dotted abbreviation is canonicalized."""
        assert extract_degree_type("Earn your M.Ed. in two years") == "M.Ed."

    def test_undotted_abbreviation(self):
        """Test that an undotted abbreviation is canonicalized."""
        assert extract_degree_type("The EdD program is part-time") == "Ed.D."

    def test_doctorate_abbreviation(self):
        """Test Ph.D. detection."""
        assert extract_degree_type("Apply to the Ph.D. program") == "Ph.D."

    def test_spelled_out_degree(self):
        """Test that spelled-out forms are recognized case-insensitively."""
        assert extract_degree_type("a MASTER OF ARTS in education") == "Master of Arts"

    def test_masters_degree(self):
        """Test the possessive form."""
        assert extract_degree_type("This master's degree prepares leaders") == "Master's"

    def test_first_match_wins(self):
        """Test that the earliest degree mention is returned."""
        assert extract_degree_type("Ed.M. students may continue to the Ed.D.") == "Ed.M."

    def test_state_abbreviation_not_a_degree(self):
        """Test that an address abbreviation is not taken for a degree."""
        assert extract_degree_type("Appian Way, Cambridge, MA 02138") is None

    def test_no_degree(self):
        """Test that text without a degree yields None."""
        assert extract_degree_type("Welcome to our campus") is None


class TestDuration:
    """Tests for duration extraction."""

    def test_credit_count_preferred(self):
        """Test that a credit count wins over a duration."""
        assert extract_duration("Complete 36-credit coursework over 2 years") == "36 credits"

    def test_numeric_duration(self):
        """Test a numeric duration with unit."""
        assert extract_duration("Finish in 18 months of study") == "18 months"

    def test_singular_unit(self):
        """Test that a count of one keeps the singular unit."""
        assert extract_duration("An intensive 1-year program") == "1 year"

    def test_full_time_phrase(self):
        """Test the schedule phrase used when no numbers appear."""
        assert extract_duration("Offered as a full-time cohort") == "Full-time"

    def test_currency_not_counted_as_credits(self):
        """Test that a price per credit is not read as a credit count."""
        assert extract_duration("Tuition is $1,250 per credit") is None

    def test_no_duration(self):
        """Test that unmatched text yields None."""
        assert extract_duration("Join our community") is None


class TestTuition:
    """Tests for per-credit and total tuition extraction."""

    TEXT = "Tuition is $2,168 per credit. The full program costs $52,032 total tuition."

    def test_cost_per_credit_uses_credit_context(self):
        """Test that the per-credit amount is found via its context window."""
        assert extract_cost_per_credit(self.TEXT) == "$2,168"

    def test_total_tuition_skips_per_credit_amount(self):
        """Test that total tuition takes the other amount."""
        assert extract_total_tuition(self.TEXT) == "$52,032"

    def test_total_tuition_is_first_amount_without_credit_context(self):
        """Test that the first amount is used when nothing is per-credit."""
        text = "Annual tuition $48,000. Fees $1,200."
        assert extract_cost_per_credit(text) is None
        assert extract_total_tuition(text) == "$48,000"

    def test_no_amounts(self):
        """Test that pages without amounts yield None."""
        assert extract_cost_per_credit("Contact us for pricing") is None
        assert extract_total_tuition("Contact us for pricing") is None

    def test_generic_extraction_from_markup(self):
        """Test both tuition fields through extract_fields."""
        html = (
            "<html><body><p>Tuition is $2,168 per credit.</p>"
            "<p>Students pay $52,032 total tuition.</p></body></html>"
        )

        fields = extract_fields(GENERIC, html)

        assert fields.cost_per_credit_hour == "$2,168"
        assert fields.total_tuition == "$52,032"


class TestDeliveryMode:
    """Tests for delivery mode extraction."""

    def test_online(self):
        """Test capitalization of a simple mode."""
        assert extract_delivery_mode("This program is offered ONLINE") == "Online"

    def test_on_campus_variants(self):
        """Test that on-campus spellings normalize to one form."""
        assert extract_delivery_mode("Classes meet on campus") == "On-campus"
        assert extract_delivery_mode("An on-campus experience") == "On-campus"

    def test_in_person(self):
        """Test the in-person form."""
        assert extract_delivery_mode("In Person sessions") == "In-person"

    def test_no_mode(self):
        """Test that text outside the vocabulary yields None."""
        assert extract_delivery_mode("Apply by January") is None


class TestCurriculumHighlights:
    """Tests for curriculum highlight extraction."""

    def test_truncate_long_text(self):
        """Test that text over 200 characters is cut with a marker."""
        text = "a" * 201

        assert truncate_highlight(text) == "a" * 200 + "..."

    def test_truncate_keeps_short_text(self):
        """Test that text of exactly 200 characters is unchanged."""
        text = "b" * 200

        assert truncate_highlight(text) == text

    def test_curriculum_region(self):
        """Test that a curriculum-labeled block is used."""
        page = PageContent.parse(
            "<div class='curriculum'>Core courses include policy analysis "
            "and quantitative methods.</div>"
        )

        assert extract_curriculum_highlights(page) == (
            "Core courses include policy analysis and quantitative methods."
        )

    def test_short_region_skipped(self):
        """Test that blocks of 20 characters or fewer are ignored."""
        page = PageContent.parse(
            "<div class='courses'>See below</div>"
            "<div id='course-list'>Statistics, economics of education, leadership</div>"
        )

        assert extract_curriculum_highlights(page) == "Statistics, economics of education, leadership"

    def test_long_region_truncated(self):
        """Test that a long block is truncated to 200 characters plus marker."""
        body = "Research methods and policy design. " * 10
        page = PageContent.parse(f"<section class='program-overview'>{body}</section>")

        highlight = extract_curriculum_highlights(page)

        assert len(highlight) == 203
        assert highlight.endswith("...")

    def test_keyword_fallback(self):
        """Test the window following a curriculum keyword."""
        page = PageContent.parse("<p>Our curriculum emphasizes research design.</p>")

        assert extract_curriculum_highlights(page) == "curriculum emphasizes research design."

    def test_scripts_ignored(self):
        """Test that script content is not treated as page text."""
        page = PageContent.parse("<script>var curriculum = 1;</script><p>Hello</p>")

        assert extract_curriculum_highlights(page) is None


class TestExtractFields:
    """Tests for the extraction entry point."""

    def test_accreditation_follows_highlights(self):
        """Test that the placeholder is set only with curriculum highlights."""
        with_highlights = extract_fields(GENERIC, "<p>Our coursework covers school finance.</p>")
        without = extract_fields(GENERIC, "<p>Annual tuition $30,000</p>")

        assert with_highlights.accreditation == ACCREDITATION_PLACEHOLDER
        assert without.curriculum_highlights is None
        assert without.accreditation is None

    def test_empty_markup(self):
        """Test that empty markup yields all-absent fields."""
        assert extract_fields(GENERIC, "") == ExtractedFields()
        assert extract_fields(GENERIC, "   ") == ExtractedFields()

    def test_malformed_markup_does_not_raise(self):
        """Test that broken markup is handled."""
        fields = extract_fields(GENERIC, "<div><<p>>></div</ $ <table><tr>")

        assert isinstance(fields, ExtractedFields)

    def test_unmatched_fields_are_none(self):
        """Test that nothing is fabricated for a page without data."""
        fields = extract_fields(GENERIC, "<html><body><h1>Welcome</h1></body></html>")

        assert fields == ExtractedFields()

    def test_harvard_constant_strategy(self):
        """Test the constant answers registered for Harvard."""
        fields = extract_fields("Harvard Graduate School of Education", "<html><body></body></html>")

        assert fields.degree_type == "Master's"
        assert fields.total_tuition == "$52,032"
        assert fields.cost_per_credit_hour == "$2,168"
        assert fields.delivery_mode == "On-campus"
        assert fields.accreditation == ACCREDITATION_PLACEHOLDER

    def test_stanford_pattern_strategy(self):
        """Test Stanford's site-tuned patterns."""
        html = (
            "<html><body><p>Master of Arts, a 1 year residential program.</p>"
            "<p>Tuition $20,000 per quarter, estimated $65,000 for the year.</p></body></html>"
        )

        fields = extract_fields("Stanford University", html)

        assert fields.degree_type == "M.A."
        assert fields.program_duration == "1 year"
        assert fields.total_tuition == "$65,000"
        assert fields.cost_per_credit_hour is None
        assert fields.delivery_mode == "On-campus"

    def test_michigan_pattern_strategy(self):
        """Test Michigan's site-tuned patterns."""
        html = "<p>The M.A. takes 4 semesters and is offered in a hybrid format.</p>"

        fields = extract_fields("University of Michigan [Ann Arbor]", html)

        assert fields.degree_type == "M.A."
        assert fields.program_duration == "4 semesters"
        assert fields.delivery_mode == "Hybrid"

    def test_teachers_college_takes_second_amount(self):
        """Test Teachers College's tuition position."""
        html = "<p>Application fee $75. Program tuition $58,000.</p>"

        fields = extract_fields("Teachers College Columbia University", html)

        assert fields.total_tuition == "$58,000"


class TestStrategyRegistry:
    """Tests for strategy lookup and registration."""

    def test_unknown_institution_uses_generic(self):
        """Test the default strategy for unregistered institutions."""
        assert get_strategy("Nowhere College") is DEFAULT_STRATEGY
        assert isinstance(DEFAULT_STRATEGY, GenericStrategy)

    def test_lookup_is_exact(self):
        """Test that registry keys are not normalized."""
        assert get_strategy("harvard graduate school of education") is DEFAULT_STRATEGY

    def test_register_new_institution(self, monkeypatch):
        """Test that adding an institution is a registration."""
        monkeypatch.setitem(
            STRATEGY_REGISTRY,
            "Nowhere College",
            ConstantStrategy(ExtractedFields(degree_type="Ed.D.")),
        )

        fields = extract_fields("Nowhere College", "<p>anything</p>")

        assert fields.degree_type == "Ed.D."
        assert fields.accreditation is None

    def test_register_strategy_function(self, monkeypatch):
        """Test register_strategy stores the strategy."""
        monkeypatch.setattr("program_enricher.extract.STRATEGY_REGISTRY", {})
        strategy = GenericStrategy()

        register_strategy("Somewhere University", strategy)

        assert get_strategy("Somewhere University") is strategy
