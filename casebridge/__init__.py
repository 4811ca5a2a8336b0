"""Bulk upload of tabular case records to a remote case-management API.

Handles:
- Row to case payload coercion
- Rate-paced submission with per-row error reporting
- Duplicate detection against existing cases
- Paginated case retrieval, filtering and export
"""

__version__ = "0.1.0"
