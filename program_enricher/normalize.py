"""
Institution name normalization used when matching scraped records.
"""

import re
from typing import List, Tuple


# Bracketed or parenthesized qualifiers such as campus suffixes: "[Ann Arbor]"
QUALIFIER_PATTERN = re.compile(r"\[.*?\]|\(.*?\)")

# Long forms collapsed to abbreviations, applied in order
ABBREVIATIONS: List[Tuple[str, str]] = [
    ("graduate school of education", "gse"),
    ("teachers college", "tc"),
    ("university", "univ"),
]


def normalize_institution_name(name: str) -> str:
    """
    Normalize an institution name for comparison.

    Lowercases, strips bracketed qualifiers, collapses known long forms
    to abbreviations and collapses whitespace.

    Args:
        name: Raw institution name.

    Returns:
        Normalized name, or an empty string for empty input.

    Example:
        >>> normalize_institution_name("University of Michigan [Ann Arbor]")
        'univ of michigan'
    """
    if not name:
        return ""

    normalized = QUALIFIER_PATTERN.sub(" ", name.lower())
    for long_form, short_form in ABBREVIATIONS:
        normalized = normalized.replace(long_form, short_form)

    return " ".join(normalized.split())
