"""
URL resolution module for the Program Enricher pipeline.

This module loads the hand-curated institution -> program -> URL table and
looks up the program page URL for a roster record. Lookups use exact,
case-sensitive equality on both names: the table mirrors the roster
strings verbatim.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from program_enricher.models import UrlMapping
from program_enricher.utils import get_logger


# Module logger
logger = get_logger("resolve")


class ConfigurationError(Exception):
    """Raised when the URL mapping store cannot be read or parsed."""
    pass


def read_url_mappings(mapping_path: Union[str, Path]) -> List[UrlMapping]:
    """
    Read URL mapping entries from a JSON file.

    The file must hold an array of {institution, programName, url} objects.
    Malformed entries are skipped with a warning.

    Args:
        mapping_path: Path to the mapping JSON file.

    Returns:
        List of UrlMapping entries in file order.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not valid
            UTF-8 JSON, or not a JSON array.
    """
    path = Path(mapping_path)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"URL mapping file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in URL mapping file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"URL mapping file {path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Could not read URL mapping file {path}: {e}") from e

    if not isinstance(data, list):
        raise ConfigurationError(f"URL mapping file {path} must contain a JSON array")

    mappings: List[UrlMapping] = []
    for index, entry in enumerate(data):
        mapping = UrlMapping.from_dict(entry)
        if mapping is None:
            logger.warning(f"Skipping invalid URL mapping entry #{index} in {path}")
            continue
        mappings.append(mapping)

    return mappings


class URLResolver:
    """
    Looks up program page URLs from a static mapping table.

    The table is read lazily on first use and cached for the lifetime of
    the resolver, so a run reads the store once.
    """

    def __init__(self, mapping_path: Union[str, Path]):
        self.mapping_path = Path(mapping_path)
        self._mappings: Optional[List[UrlMapping]] = None

    def load(self) -> List[UrlMapping]:
        """
        Load mapping entries from the configured source.

        Never raises: an unreadable store yields an empty table and a
        logged error naming the path that was attempted.

        Returns:
            List of UrlMapping entries (possibly empty).
        """
        if self._mappings is not None:
            return self._mappings

        try:
            self._mappings = read_url_mappings(self.mapping_path)
            logger.info(f"Loaded {len(self._mappings)} URL mapping(s) from {self.mapping_path}")
        except ConfigurationError as e:
            logger.error(f"URL mappings unavailable (attempted {self.mapping_path}): {e}")
            self._mappings = []

        return self._mappings

    def resolve(self, institution: str, program: str) -> Optional[str]:
        """
        Find the URL for an (institution, program) pair.

        Args:
            institution: Institution name exactly as it appears in the roster.
            program: Program name exactly as it appears in the roster.

        Returns:
            The mapped URL, or None if no entry matches.
        """
        for mapping in self.load():
            if mapping.institution == institution and mapping.program_name == program:
                return mapping.url
        return None
