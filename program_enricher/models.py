"""
Record types shared by every stage of the enrichment pipeline.

InternalRecord and UrlMapping are read-only inputs; ScrapedRecord and
MergedRecord are created fresh for each run.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# Column names used by the roster CSV and by every output artifact
INTERNAL_COLUMNS = [
    "Program",
    "cip_codes_used",
    "Institution",
    "app_percentile",
    "admissibility_percentile",
    "win_percentile",
    "overall_percentile",
]

SCRAPED_COLUMNS = [
    "degreeType",
    "programDuration",
    "costPerCreditHour",
    "totalTuition",
    "deliveryMode",
    "curriculumHighlights",
    "accreditation",
    "sourceUrl",
    "lastScraped",
]

OUTPUT_COLUMNS = INTERNAL_COLUMNS + SCRAPED_COLUMNS


def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class InternalRecord:
    """
    One row of the internally maintained competitor roster.

    Percentile fields are kept as the roster strings (possibly suffixed
    with "%"); parsing them is left to consumers of the output.
    """
    program: str
    cip_codes_used: str
    institution: str
    app_percentile: str
    admissibility_percentile: str
    win_percentile: str
    overall_percentile: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "InternalRecord":
        """
        Build a record from a roster row keyed by the roster column names.

        Missing columns become empty strings; values are stripped.
        """
        def value(column: str) -> str:
            raw = row.get(column)
            return "" if raw is None else str(raw).strip()

        return cls(
            program=value("Program"),
            cip_codes_used=value("cip_codes_used"),
            institution=value("Institution"),
            app_percentile=value("app_percentile"),
            admissibility_percentile=value("admissibility_percentile"),
            win_percentile=value("win_percentile"),
            overall_percentile=value("overall_percentile"),
        )

    def to_row(self) -> Dict[str, str]:
        return {
            "Program": self.program,
            "cip_codes_used": self.cip_codes_used,
            "Institution": self.institution,
            "app_percentile": self.app_percentile,
            "admissibility_percentile": self.admissibility_percentile,
            "win_percentile": self.win_percentile,
            "overall_percentile": self.overall_percentile,
        }


@dataclass(frozen=True)
class UrlMapping:
    """Static mapping entry from (institution, program) to a program page URL."""
    institution: str
    program_name: str
    url: str

    @classmethod
    def from_dict(cls, entry: Dict[str, Any]) -> Optional["UrlMapping"]:
        """
        Parse a mapping entry of the form {institution, programName, url}.

        Returns:
            UrlMapping, or None if any field is missing or not a string.
        """
        if not isinstance(entry, dict):
            return None

        institution = entry.get("institution")
        program_name = entry.get("programName")
        url = entry.get("url")

        if not all(isinstance(v, str) and v.strip() for v in (institution, program_name, url)):
            return None

        return cls(institution=institution, program_name=program_name, url=url.strip())


@dataclass(frozen=True)
class ScrapedRecord:
    """
    Attributes extracted from one competitor program page.

    Every attribute except identity, source URL and timestamp is
    independently optional.
    """
    institution_name: str
    program_name: str
    source_url: str
    scraped_at: str
    degree_type: Optional[str] = None
    program_duration: Optional[str] = None
    cost_per_credit_hour: Optional[str] = None
    total_tuition: Optional[str] = None
    delivery_mode: Optional[str] = None
    curriculum_highlights: Optional[str] = None
    accreditation: Optional[str] = None

    @classmethod
    def empty(cls, institution_name: str, program_name: str, source_url: str) -> "ScrapedRecord":
        """Build a record with every optional attribute absent."""
        return cls(
            institution_name=institution_name,
            program_name=program_name,
            source_url=source_url,
            scraped_at=utc_timestamp(),
        )

    def has_attributes(self) -> bool:
        """True if at least one optional attribute was extracted."""
        return any(getattr(self, name) for name in SCRAPED_ATTRIBUTE_NAMES)


SCRAPED_ATTRIBUTE_NAMES = (
    "degree_type",
    "program_duration",
    "cost_per_credit_hour",
    "total_tuition",
    "delivery_mode",
    "curriculum_highlights",
    "accreditation",
)


@dataclass(frozen=True)
class MergedRecord:
    """One roster record enriched with at most one scraped record's fields."""
    program: str
    cip_codes_used: str
    institution: str
    app_percentile: str
    admissibility_percentile: str
    win_percentile: str
    overall_percentile: str
    degree_type: Optional[str] = None
    program_duration: Optional[str] = None
    cost_per_credit_hour: Optional[str] = None
    total_tuition: Optional[str] = None
    delivery_mode: Optional[str] = None
    curriculum_highlights: Optional[str] = None
    accreditation: Optional[str] = None
    source_url: Optional[str] = None
    last_scraped: Optional[str] = None

    @property
    def has_scraped_data(self) -> bool:
        return bool(self.last_scraped)

    def to_dict(self) -> Dict[str, Optional[str]]:
        """
        Serialize using the output column names.

        Absent scraped fields are kept as None.
        """
        values = [getattr(self, f.name) for f in fields(self)]
        return dict(zip(OUTPUT_COLUMNS, values))

    def to_csv_row(self) -> List[str]:
        """Serialize as a CSV row, emitting absent fields as empty strings."""
        return ["" if value is None else value for value in self.to_dict().values()]

    def internal_record(self) -> InternalRecord:
        data = asdict(self)
        return InternalRecord(**{f.name: data[f.name] for f in fields(InternalRecord)})
