"""
Table content fingerprints.

A fingerprint summarizes the whole content of a table as a signed 64-bit
integer, so it fits an SQLite INTEGER column. It does not depend on the
order rows are stored in.
"""

from __future__ import annotations

import hashlib
from typing import Any, Iterable, Sequence


class IntegrityChecker:
    """
    Canonical row hashing and whole-table fingerprints.

    Example:
        checker = IntegrityChecker("md5")

        # Checksum for a row
        checksum = checker.row_checksum(row_values)

        # Fingerprint for a table
        fingerprint = checker.table_fingerprint(columns, rows)
    """

    def __init__(self, algorithm: str = "md5") -> None:
        """
        Initialize integrity checker.

        Args:
            algorithm: Hash algorithm ("md5" or "sha256")
        """
        if algorithm not in ("md5", "sha256"):
            raise ValueError(f"Unsupported algorithm: {algorithm}")
        self.algorithm = algorithm

    def _get_hasher(self) -> "hashlib._Hash":
        """Get a new hash object."""
        if self.algorithm == "sha256":
            return hashlib.sha256()
        return hashlib.md5()

    def row_checksum(self, values: Sequence[Any]) -> bytes:
        """
        Calculate the digest of a single row.

        Values are converted to a canonical string representation
        and then hashed.
        """
        hasher = self._get_hasher()

        parts = []
        for val in values:
            if val is None:
                parts.append("\\N")  # NULL marker
            elif isinstance(val, bytes):
                parts.append(val.hex())
            elif isinstance(val, bool):
                parts.append("1" if val else "0")
            elif isinstance(val, float):
                parts.append(repr(val))
            else:
                parts.append(str(val).replace("\\", "\\\\").replace("|", "\\|"))

        hasher.update("|".join(parts).encode("utf-8"))
        return hasher.digest()

    def table_fingerprint(
        self,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
    ) -> int:
        """
        Calculate the fingerprint of a whole table.

        Row digests are sorted before being combined, so the result is the
        same for any storage order.

        Args:
            columns: Column names, part of the fingerprint
            rows: All rows in the table

        Returns:
            Signed 64-bit fingerprint
        """
        digests = sorted(self.row_checksum(row) for row in rows)

        hasher = self._get_hasher()
        hasher.update("|".join(columns).encode("utf-8"))
        hasher.update(len(digests).to_bytes(8, "little"))
        for digest in digests:
            hasher.update(digest)

        return int.from_bytes(hasher.digest()[:8], "little", signed=True)

    def compare_fingerprints(self, stored: int | None, current: int) -> bool:
        """Compare a stored fingerprint against the current one."""
        return stored is not None and stored == current
