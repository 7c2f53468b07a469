"""
Extraction module for the Program Enricher pipeline.

This module turns program page markup into structured attributes
(degree type, duration, tuition, delivery mode, curriculum highlights).

Extraction goes through a strategy registry keyed by exact institution
name. Registered strategies either return constant answers or apply a
pattern set tuned to one site; every other institution gets the generic
pattern rules. Extraction is total: unmatched fields are None and
malformed or empty markup yields an all-None result.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from program_enricher.utils import capitalize_first, get_logger, sanitize_text


# Module logger
logger = get_logger("extract")

ACCREDITATION_PLACEHOLDER = "Regionally Accredited"
HIGHLIGHT_LIMIT = 200
HIGHLIGHT_MIN_LENGTH = 20
ELLIPSIS = "..."
CONTEXT_WINDOW = 50

CURRENCY_PATTERN = re.compile(r"\$\s?\d[\d,]*(?:\.\d{2})?")

# Abbreviations are matched case-sensitively, spelled-out forms are not
DEGREE_PATTERN = re.compile(
    r"(?<![A-Za-z.])(?:M\.S\.Ed\.?|MSEd|M\.?Ed\.?|Ed\.?M\.?|Ed\.?D\.?|Ph\.?D\.?|M\.?P\.?P\.?|M\.A\.?|M\.S\.?)(?![A-Za-z])"
    r"|(?i:\bmaster(?:'?s)?(?:\s+of\s+(?:arts|science|education|public\s+policy))?\b"
    r"|\bdoctor\s+of\s+(?:education|philosophy)\b|\bdoctorate\b)"
)

DEGREE_ABBREVIATIONS = {
    "msed": "M.S.Ed.",
    "med": "M.Ed.",
    "edm": "Ed.M.",
    "edd": "Ed.D.",
    "phd": "Ph.D.",
    "mpp": "M.P.P.",
    "ma": "M.A.",
    "ms": "M.S.",
}

DEGREE_FULL_FORMS = {
    "master": "Master's",
    "master of arts": "Master of Arts",
    "master of science": "Master of Science",
    "master of education": "Master of Education",
    "master of public policy": "Master of Public Policy",
    "doctor of education": "Doctor of Education",
    "doctor of philosophy": "Doctor of Philosophy",
    "doctorate": "Doctorate",
}

CREDITS_PATTERN = re.compile(r"(?<![\d,.$])(\d{1,3})[\s-]*(?:credit|unit)s?\b", re.IGNORECASE)
DURATION_UNIT_PATTERN = re.compile(
    r"(?<![\d,.$])(?P<count>\d+(?:\.\d+)?)[\s-]*(?P<unit>years?|yrs?|months?|mos?|semesters?|terms?)\b",
    re.IGNORECASE,
)
SCHEDULE_PATTERN = re.compile(r"\b(?P<schedule>full|part)[\s-]?time\b", re.IGNORECASE)

DURATION_UNITS = {
    "year": "year",
    "yr": "year",
    "month": "month",
    "mo": "month",
    "semester": "semester",
    "term": "term",
}

DELIVERY_PATTERN = re.compile(
    r"\b(?:online|hybrid|blended|on[-\s]?campus|in[-\s]?person|residential|distance|remote)\b",
    re.IGNORECASE,
)

CREDIT_CONTEXT_PATTERN = re.compile(r"\b(?:credit|unit|hour)", re.IGNORECASE)

CURRICULUM_SELECTORS = [
    ".curriculum",
    ".courses",
    ".coursework",
    ".overview",
    ".program-overview",
    "[class*='curriculum']",
    "[class*='course']",
    "[class*='overview']",
    "[id*='curriculum']",
    "[id*='course']",
]

CURRICULUM_KEYWORD_PATTERN = re.compile(
    r"curriculum|core courses?|coursework|courses?|what you'll study",
    re.IGNORECASE,
)

NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]


@dataclass(frozen=True)
class ExtractedFields:
    """Optional attributes extracted from one page."""
    degree_type: Optional[str] = None
    program_duration: Optional[str] = None
    cost_per_credit_hour: Optional[str] = None
    total_tuition: Optional[str] = None
    delivery_mode: Optional[str] = None
    curriculum_highlights: Optional[str] = None
    accreditation: Optional[str] = None


@dataclass
class PageContent:
    """
    Parsed page handed to extraction strategies.

    Attributes:
        html: Raw markup as fetched.
        soup: Parsed document with non-content tags removed.
        text: Visible text, whitespace-collapsed, original case.
    """
    html: str
    soup: BeautifulSoup
    text: str

    @classmethod
    def parse(cls, html: str) -> "PageContent":
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(NON_CONTENT_TAGS):
            tag.decompose()
        root = soup.body or soup
        text = sanitize_text(root.get_text(" "))
        return cls(html=html, soup=soup, text=text)


# ---------------------------------------------------------------------------
# Generic field rules
# ---------------------------------------------------------------------------

def canonical_degree(raw: str) -> str:
    """
    Map a matched degree string to its canonical label.

    Example:
        >>> canonical_degree("MEd")
        'M.Ed.'
    """
    collapsed = " ".join(raw.lower().replace("\u2019", "'").split())
    collapsed = re.sub(r"^master(?:'?s)?\b", "master", collapsed)
    if collapsed in DEGREE_FULL_FORMS:
        return DEGREE_FULL_FORMS[collapsed]

    key = re.sub(r"[\s.']", "", collapsed)
    return DEGREE_ABBREVIATIONS.get(key, raw.strip())


def extract_degree_type(text: str) -> Optional[str]:
    match = DEGREE_PATTERN.search(text)
    return canonical_degree(match.group(0)) if match else None


def _format_count(count: str, unit: str) -> str:
    label = unit if count in ("1", "1.0") else f"{unit}s"
    return f"{count} {label}"


def format_duration_match(match: "re.Match") -> str:
    """Render a DURATION_UNIT_PATTERN match as "<count> <unit(s)>"."""
    unit_key = match.group("unit").lower().rstrip("s")
    return _format_count(match.group("count"), DURATION_UNITS.get(unit_key, unit_key))


def extract_duration(text: str) -> Optional[str]:
    """
    Extract program duration.

    Preference order: credit count, numeric duration with unit, then a
    full-time/part-time phrase.

    Args:
        text: Visible page text.

    Returns:
        Duration string such as "36 credits", "2 years" or "Full-time".
    """
    credits = CREDITS_PATTERN.search(text)
    if credits:
        return _format_count(credits.group(1), "credit")

    duration = DURATION_UNIT_PATTERN.search(text)
    if duration:
        return format_duration_match(duration)

    schedule = SCHEDULE_PATTERN.search(text)
    if schedule:
        return f"{schedule.group('schedule').capitalize()}-time"

    return None


def _currency_matches(text: str) -> List["re.Match"]:
    return list(CURRENCY_PATTERN.finditer(text))


def _clean_amount(raw: str) -> str:
    return raw.replace(" ", "").rstrip(",")


def _has_credit_context(text: str, match: "re.Match") -> bool:
    start = max(0, match.start() - CONTEXT_WINDOW)
    surrounding = text[start:match.end() + CONTEXT_WINDOW]
    return CREDIT_CONTEXT_PATTERN.search(surrounding) is not None


def _per_credit_match(text: str) -> Optional["re.Match"]:
    for match in _currency_matches(text):
        if _has_credit_context(text, match):
            return match
    return None


def extract_cost_per_credit(text: str) -> Optional[str]:
    """
    Return the first currency amount whose surrounding context mentions
    credit, unit or hour.
    """
    match = _per_credit_match(text)
    return _clean_amount(match.group(0)) if match else None


def extract_total_tuition(text: str) -> Optional[str]:
    """
    Return the first currency amount on the page, skipping the amount
    chosen as the per-credit cost.

    No further disambiguation between annual, per-term and total figures
    is attempted.
    """
    per_credit = _per_credit_match(text)
    for match in _currency_matches(text):
        if per_credit is not None and match.start() == per_credit.start():
            continue
        return _clean_amount(match.group(0))
    return None


def canonical_delivery_mode(raw: str) -> str:
    collapsed = re.sub(r"[-\s]+", "", raw.lower())
    if collapsed == "oncampus":
        return "On-campus"
    if collapsed == "inperson":
        return "In-person"
    return capitalize_first(raw)


def extract_delivery_mode(text: str, pattern: re.Pattern = DELIVERY_PATTERN) -> Optional[str]:
    match = pattern.search(text)
    return canonical_delivery_mode(match.group(0)) if match else None


def truncate_highlight(text: str, limit: int = HIGHLIGHT_LIMIT) -> str:
    """
    Truncate text to `limit` characters, appending an ellipsis marker only
    when something was cut.
    """
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def extract_curriculum_highlights(page: PageContent) -> Optional[str]:
    """
    Extract a short curriculum summary.

    Tries curriculum/course-labeled regions first, taking the first block
    with more than 20 characters of text. Falls back to the 200 characters
    following a curriculum keyword in the page text.

    Args:
        page: Parsed page.

    Returns:
        Highlight text or None.
    """
    for selector in CURRICULUM_SELECTORS:
        for element in page.soup.select(selector):
            content = sanitize_text(element.get_text(" "))
            if len(content) > HIGHLIGHT_MIN_LENGTH:
                return truncate_highlight(content)

    keyword = CURRICULUM_KEYWORD_PATTERN.search(page.text)
    if keyword:
        window = page.text[keyword.start():keyword.start() + HIGHLIGHT_LIMIT].strip()
        return window or None

    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class ExtractionStrategy(ABC):
    """Turns a parsed page into extracted fields."""

    @abstractmethod
    def extract(self, page: PageContent) -> ExtractedFields:
        """Extract optional attributes from a parsed page."""


class GenericStrategy(ExtractionStrategy):
    """Pattern rules applied to any institution without an override."""

    def extract(self, page: PageContent) -> ExtractedFields:
        text = page.text
        return ExtractedFields(
            degree_type=extract_degree_type(text),
            program_duration=extract_duration(text),
            cost_per_credit_hour=extract_cost_per_credit(text),
            total_tuition=extract_total_tuition(text),
            delivery_mode=extract_delivery_mode(text),
            curriculum_highlights=extract_curriculum_highlights(page),
        )


class ConstantStrategy(ExtractionStrategy):
    """Returns fixed answers regardless of page content."""

    def __init__(self, fields: ExtractedFields):
        self.fields = fields

    def extract(self, page: PageContent) -> ExtractedFields:
        return self.fields


@dataclass(frozen=True)
class PatternStrategy(ExtractionStrategy):
    """
    Site-tuned pattern set.

    Attributes:
        degree_pattern: Presence of a match yields `degree_label`.
        degree_label: Label reported when the degree pattern matches.
        duration_pattern: Pattern with optional `count`/`unit` groups; a
            match without a count yields `duration_fallback`.
        duration_fallback: Duration reported for count-less matches.
        tuition_index: Which currency amount in the raw markup is the
            tuition; out-of-range indexes fall back to the first amount.
        delivery_pattern: Delivery vocabulary accepted on this site.
        delivery_label: Fixed delivery label, or None to report the match.
        per_credit: Whether the site lists per-credit pricing.
    """
    degree_pattern: re.Pattern
    degree_label: str
    duration_pattern: re.Pattern
    delivery_pattern: re.Pattern
    tuition_index: int = 0
    duration_fallback: Optional[str] = None
    delivery_label: Optional[str] = None
    per_credit: bool = True

    def _duration(self, text: str) -> Optional[str]:
        match = self.duration_pattern.search(text)
        if not match:
            return None
        if match.groupdict().get("count"):
            return format_duration_match(match)
        return self.duration_fallback

    def _tuition(self, html: str) -> Optional[str]:
        amounts = CURRENCY_PATTERN.findall(html)
        if not amounts:
            return None
        try:
            return _clean_amount(amounts[self.tuition_index])
        except IndexError:
            return _clean_amount(amounts[0])

    def _delivery(self, text: str) -> Optional[str]:
        match = self.delivery_pattern.search(text)
        if not match:
            return None
        return self.delivery_label or canonical_delivery_mode(match.group(0))

    def extract(self, page: PageContent) -> ExtractedFields:
        text = page.text
        return ExtractedFields(
            degree_type=self.degree_label if self.degree_pattern.search(text) else None,
            program_duration=self._duration(text),
            cost_per_credit_hour=extract_cost_per_credit(text) if self.per_credit else None,
            total_tuition=self._tuition(page.html),
            delivery_mode=self._delivery(text),
            curriculum_highlights=extract_curriculum_highlights(page),
        )


def _pattern(expression: str) -> re.Pattern:
    return re.compile(expression, re.IGNORECASE)


_COUNT_YEAR = r"(?P<count>\d+)\s*(?P<unit>year)"
_COUNT_YEAR_OR_SEMESTER = r"(?P<count>\d+)\s*(?P<unit>year|semester)"
_MASTER_OF_ARTS = r"\bm\.?a\.?(?![a-z])|\bmaster(?:'s)?\s+of\s+arts\b"

STRATEGY_REGISTRY: Dict[str, ExtractionStrategy] = {}
DEFAULT_STRATEGY: ExtractionStrategy = GenericStrategy()


def register_strategy(institution: str, strategy: ExtractionStrategy) -> None:
    """
    Register an override strategy for an institution.

    Args:
        institution: Institution name exactly as it appears in the roster.
        strategy: Strategy to use instead of the generic rules.
    """
    STRATEGY_REGISTRY[institution] = strategy


def get_strategy(institution: str) -> ExtractionStrategy:
    """Return the registered strategy for an institution, or the generic one."""
    return STRATEGY_REGISTRY.get(institution, DEFAULT_STRATEGY)


def register_default_strategies() -> None:
    """Register the built-in institution overrides."""
    register_strategy(
        "Harvard Graduate School of Education",
        ConstantStrategy(ExtractedFields(
            degree_type="Master's",
            program_duration="1 year full-time",
            cost_per_credit_hour="$2,168",
            total_tuition="$52,032",
            delivery_mode="On-campus",
            curriculum_highlights=(
                "Policy analysis, organizational leadership, data-driven decision making, "
                "quantitative methods"
            ),
        )),
    )
    register_strategy(
        "Stanford University",
        PatternStrategy(
            degree_pattern=_pattern(_MASTER_OF_ARTS),
            degree_label="M.A.",
            duration_pattern=_pattern(_COUNT_YEAR + r"|full[-\s]?time"),
            duration_fallback="Full-time",
            tuition_index=-1,
            delivery_pattern=_pattern(r"on[-\s]?campus|residential"),
            delivery_label="On-campus",
            per_credit=False,
        ),
    )
    register_strategy(
        "University of Pennsylvania",
        PatternStrategy(
            degree_pattern=_pattern(r"\bm\.?s\.?e\.?d?\.?(?![a-z])|\bmaster(?:'s)?\s+of\s+science\b"),
            degree_label="M.S.Ed.",
            duration_pattern=_pattern(r"(?P<count>\d+)\s*(?P<unit>year|month)"),
            delivery_pattern=_pattern(r"on[-\s]?campus|hybrid|online"),
        ),
    )
    register_strategy(
        "Teachers College Columbia University",
        PatternStrategy(
            degree_pattern=_pattern(_MASTER_OF_ARTS),
            degree_label="M.A.",
            duration_pattern=_pattern(_COUNT_YEAR_OR_SEMESTER),
            tuition_index=1,
            delivery_pattern=_pattern(r"on[-\s]?campus|hybrid"),
            delivery_label="On-campus",
        ),
    )
    register_strategy(
        "Duke University",
        PatternStrategy(
            degree_pattern=_pattern(r"\bm\.?p\.?p\.?(?![a-z])|\bmaster(?:'s)?\s+of\s+public\s+policy\b"),
            degree_label="M.P.P.",
            duration_pattern=_pattern(r"(?P<count>\d+)\s*(?P<unit>year|month)"),
            delivery_pattern=_pattern(r"on[-\s]?campus|residential"),
            delivery_label="On-campus",
            per_credit=False,
        ),
    )
    register_strategy(
        "University of Michigan [Ann Arbor]",
        PatternStrategy(
            degree_pattern=_pattern(_MASTER_OF_ARTS),
            degree_label="M.A.",
            duration_pattern=_pattern(_COUNT_YEAR_OR_SEMESTER),
            delivery_pattern=_pattern(r"on[-\s]?campus|hybrid|online"),
        ),
    )


register_default_strategies()


def extract_fields(institution: str, html: str) -> ExtractedFields:
    """
    Extract structured attributes from a program page.

    Looks up the institution's override strategy, falling back to the
    generic rules. Accreditation is a placeholder set only when curriculum
    highlights were found; it is not looked up.

    Args:
        institution: Institution name exactly as it appears in the roster.
        html: Page markup (may be empty).

    Returns:
        ExtractedFields; every unmatched field is None.
    """
    if not html or not html.strip():
        logger.debug(f"Empty markup for {institution}, nothing to extract")
        return ExtractedFields()

    try:
        page = PageContent.parse(html)
    except Exception as e:
        logger.error(f"Failed to parse markup for {institution}: {e}")
        return ExtractedFields()

    strategy = get_strategy(institution)
    logger.debug(f"Extracting {institution} with {type(strategy).__name__}")
    fields = strategy.extract(page)

    accreditation = ACCREDITATION_PLACEHOLDER if fields.curriculum_highlights else None
    return replace(fields, accreditation=accreditation)
