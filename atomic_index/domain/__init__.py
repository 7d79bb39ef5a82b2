"""
Domain package for the atomic index repository.

Exports the record model and status enumeration used by the key scheme,
diff engine, and repository. Keep this package focused on data definitions
and validation concerns.
"""

from atomic_index.domain.models import Record, RecordStatus

__all__ = [
    "Record",
    "RecordStatus",
]
