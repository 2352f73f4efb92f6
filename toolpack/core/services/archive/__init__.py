"""
Archive handling — validated extraction, packaging and hashing.
"""

from toolpack.core.services.archive.extractor import ArchiveExtractor  # noqa: F401
from toolpack.core.services.archive.hashing import hash_file, verify_file  # noqa: F401
from toolpack.core.services.archive.validation import ArchiveEntry  # noqa: F401
