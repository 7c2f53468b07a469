"""
Program Enricher - competitor program enrichment pipeline.

This package provides functionality to:
- Resolve program page URLs for roster entries from a static mapping
- Fetch program pages, falling back to a headless browser
- Extract degree, duration, tuition and delivery attributes from markup
- Match and merge scraped attributes into the internal roster
- Persist timestamped and "latest" JSON/CSV snapshots of the merged data
"""

__version__ = "1.0.0"
__author__ = "Program Enricher Team"
