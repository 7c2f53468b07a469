"""
Output module for the Program Enricher pipeline.

This module persists the merged dataset as two artifact pairs in the
output directory:
- {prefix}_{timestamp}.json and {prefix}_latest.json
- {prefix}_{timestamp}.csv and {prefix}_latest.csv

Timestamped artifacts are written before the "latest" ones, and each file
is written to a temporary file first and then moved into place.
"""

import csv
import io
import json
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from program_enricher.models import OUTPUT_COLUMNS, MergedRecord
from program_enricher.utils import EnricherSettings, get_logger


# Module logger
logger = get_logger("output")

DEFAULT_PREFIX = "external_competitors"
DEFAULT_DESCRIPTION = (
    "Merged competitor data combining internal analytics with scraped program information"
)


class WriteError(Exception):
    """Raised when the output directory or an artifact cannot be written."""
    pass


@dataclass
class OutputPaths:
    """Locations of the artifacts written by one run."""
    json_path: Path
    csv_path: Path
    latest_json_path: Path
    latest_csv_path: Path


def format_iso(moment: datetime) -> str:
    """ISO-8601 UTC string with millisecond precision and a "Z" suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def file_timestamp(moment: datetime) -> str:
    """
    Timestamp usable in a file name: the ISO form with ":" and "." replaced.

    Example:
        >>> file_timestamp(datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        '2026-01-02T03-04-05-000Z'
    """
    return format_iso(moment).replace(":", "-").replace(".", "-")


def count_with_scraped_data(records: Sequence[MergedRecord]) -> int:
    return sum(1 for record in records if record.has_scraped_data)


def build_json_document(
    records: Sequence[MergedRecord],
    generated_at: str,
    description: str = DEFAULT_DESCRIPTION
) -> Dict[str, Any]:
    """
    Build the structured artifact: metadata plus every merged record.

    Args:
        records: Merged records in output order.
        generated_at: ISO timestamp of the run.
        description: Free-text description stored in the metadata.

    Returns:
        JSON-serializable dictionary.
    """
    return {
        "metadata": {
            "generatedAt": generated_at,
            "totalRecords": len(records),
            "recordsWithScrapedData": count_with_scraped_data(records),
            "description": description,
        },
        "competitors": [record.to_dict() for record in records],
    }


def build_csv_content(records: Sequence[MergedRecord]) -> str:
    """
    Render merged records as CSV with a fixed 16-column header.

    Every value is quoted; absent fields are written as empty strings.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(OUTPUT_COLUMNS)
    for record in records:
        writer.writerow(record.to_csv_row())
    return buffer.getvalue()


def write_text_file(filepath: Path, content: str) -> None:
    """
    Write text through a temporary file in the same directory.

    Args:
        filepath: Destination path.
        content: Text to write.

    Raises:
        WriteError: If the file cannot be written.
    """
    temp_path: Optional[str] = None
    try:
        fd, temp_path = tempfile.mkstemp(
            suffix=filepath.suffix,
            prefix=".enricher_",
            dir=filepath.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        shutil.move(temp_path, filepath)
        temp_path = None
    except OSError as e:
        raise WriteError(f"Failed to write {filepath}: {e}") from e
    finally:
        if temp_path is not None and os.path.exists(temp_path):
            os.unlink(temp_path)

    logger.debug(f"Wrote {filepath}")


class OutputWriter:
    """
    Persists merged records as timestamped and "latest" JSON/CSV artifacts.

    Args:
        output_dir: Directory for the artifacts; created when absent.
        prefix: File name prefix.
        description: Description stored in the JSON metadata.
        clock: Returns the current time (injectable for tests).
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        prefix: str = DEFAULT_PREFIX,
        description: str = DEFAULT_DESCRIPTION,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self.output_dir = Path(output_dir)
        self.prefix = prefix
        self.description = description
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: EnricherSettings) -> "OutputWriter":
        return cls(settings.output_dir, prefix=settings.output_prefix)

    def latest_paths(self) -> List[Path]:
        return [
            self.output_dir / f"{self.prefix}_latest.json",
            self.output_dir / f"{self.prefix}_latest.csv",
        ]

    def _ensure_output_dir(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(f"Could not create output directory {self.output_dir}: {e}") from e

    def persist(self, records: Sequence[MergedRecord]) -> OutputPaths:
        """
        Write all four artifacts for one run.

        Args:
            records: The full merged dataset.

        Returns:
            OutputPaths of the written files.

        Raises:
            WriteError: If the directory or any file cannot be written.
        """
        logger.info(f"Writing {len(records)} merged record(s) to {self.output_dir}")
        self._ensure_output_dir()

        moment = self._clock()
        stamp = file_timestamp(moment)
        latest_json_path, latest_csv_path = self.latest_paths()
        paths = OutputPaths(
            json_path=self.output_dir / f"{self.prefix}_{stamp}.json",
            csv_path=self.output_dir / f"{self.prefix}_{stamp}.csv",
            latest_json_path=latest_json_path,
            latest_csv_path=latest_csv_path,
        )

        document = build_json_document(records, format_iso(moment), self.description)
        json_content = json.dumps(document, indent=2, ensure_ascii=False)
        csv_content = build_csv_content(records)

        write_text_file(paths.json_path, json_content)
        logger.info(f"JSON written to: {paths.json_path}")
        write_text_file(paths.csv_path, csv_content)
        logger.info(f"CSV written to: {paths.csv_path}")

        write_text_file(paths.latest_json_path, json_content)
        write_text_file(paths.latest_csv_path, csv_content)
        logger.info(f"Latest artifacts updated: {paths.latest_json_path.name}, {paths.latest_csv_path.name}")

        return paths
