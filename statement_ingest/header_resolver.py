"""
Header Resolver.

Maps the fields of a header row onto :class:`CanonicalField` columns using
case-insensitive substring containment against an ordered synonym list per
field.

Design decisions
----------------
* The synonym table is an explicit ordered list of ``(field, synonyms)``
  pairs, evaluated top to bottom.  Order never depends on dict iteration.
* Tie-break: for each field, the first header (left to right) containing
  any of its synonyms wins.  A header may satisfy several fields
  (e.g. "Debit Amount" is both a debit and an amount column).
* Resolution is pure: the same header row always gives the same map.
* Users can extend the synonyms at runtime via ``add_synonyms`` or
  ``load_custom_synonyms`` (JSON file); extensions are appended after the
  built-ins so they never change existing resolutions.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from statement_ingest.logging_setup import get_logger
from statement_ingest.schema import CanonicalField

logger = get_logger("header_resolver")


# ---------------------------------------------------------------------------
# Built-in synonym table
# ---------------------------------------------------------------------------
# Convention: synonyms are stored normalised (lowercase, single spaces).

_BUILTIN_SYNONYMS: List[Tuple[CanonicalField, Tuple[str, ...]]] = [
    (CanonicalField.DATE, ("date",)),
    (CanonicalField.DESCRIPTION, (
        "description",
        "particulars",
        "narration",
        "details",
        "remarks",
    )),
    (CanonicalField.DEBIT, (
        "debit",
        "withdrawal",
        "paid out",
        "money out",
    )),
    (CanonicalField.CREDIT, (
        "credit",
        "deposit",
        "paid in",
        "money in",
    )),
    (CanonicalField.AMOUNT, (
        "amount",
        "txn amt",
    )),
    (CanonicalField.MERCHANT, (
        "merchant",
        "payee",
        "beneficiary",
        "counterparty",
    )),
]

_SEPARATORS_RE = re.compile(r"[_\s]+")


def normalize_header(raw: str) -> str:
    """Lowercase, trim, collapse underscores and whitespace runs to one space."""
    return _SEPARATORS_RE.sub(" ", raw.strip().lower()).strip()


@dataclass(frozen=True)
class ColumnMap:
    """Resolved column index per canonical field (``None`` = absent)."""

    date: Optional[int] = None
    description: Optional[int] = None
    debit: Optional[int] = None
    credit: Optional[int] = None
    amount: Optional[int] = None
    merchant: Optional[int] = None

    def get(self, field_: CanonicalField) -> Optional[int]:
        return getattr(self, field_.value)

    @property
    def resolved(self) -> Dict[CanonicalField, int]:
        out: Dict[CanonicalField, int] = {}
        for f in CanonicalField:
            idx = self.get(f)
            if idx is not None:
                out[f] = idx
        return out

    @property
    def has_debit_credit(self) -> bool:
        return self.debit is not None and self.credit is not None


class HeaderResolver:
    """Ordered synonym-list header → canonical column resolver.

    Parameters
    ----------
    extra_synonyms:
        Optional ``{canonical_field_name: [synonym, ...]}`` merged in at
        construction time.
    """

    def __init__(
        self,
        extra_synonyms: Optional[Dict[str, Sequence[str]]] = None,
    ) -> None:
        self._rules: List[Tuple[CanonicalField, List[str]]] = [
            (f, [normalize_header(s) for s in syns])
            for f, syns in _BUILTIN_SYNONYMS
        ]
        if extra_synonyms:
            self.add_synonyms(extra_synonyms)

    # ------------------------------------------------------------------ #
    # Resolution
    # ------------------------------------------------------------------ #

    def resolve(self, headers: Iterable[str]) -> ColumnMap:
        """Map each canonical field to the first matching header index."""
        normalised = [normalize_header(h) for h in headers]
        found: Dict[str, int] = {}

        for field_, synonyms in self._rules:
            for idx, header in enumerate(normalised):
                if header and any(s in header for s in synonyms):
                    found[field_.value] = idx
                    break

        column_map = ColumnMap(**found)
        logger.info(
            "Resolved headers %r → %s",
            normalised,
            {f.value: i for f, i in column_map.resolved.items()},
        )
        return column_map

    # ------------------------------------------------------------------ #
    # Extension API
    # ------------------------------------------------------------------ #

    def add_synonym(self, canonical: str, synonym: str) -> None:
        """Register one more synonym for a canonical field.

        Raises
        ------
        ValueError
            If ``canonical`` is not a ``CanonicalField`` value.
        """
        try:
            field_ = CanonicalField(canonical.strip().lower())
        except ValueError as exc:
            raise ValueError(
                f"Unknown canonical field {canonical!r}. "
                f"Must be one of {[f.value for f in CanonicalField]}."
            ) from exc

        ns = normalize_header(synonym)
        if not ns:
            return
        for f, synonyms in self._rules:
            if f is field_:
                if ns not in synonyms:
                    synonyms.append(ns)
                    logger.debug("Added synonym: %r → %r", ns, f.value)
                return

    def add_synonyms(self, mapping: Dict[str, Sequence[str]]) -> None:
        """Bulk-add synonyms from a ``{canonical: [synonym, ...]}`` dict."""
        for canonical, synonyms in mapping.items():
            if isinstance(synonyms, str):
                synonyms = [synonyms]
            for s in synonyms:
                self.add_synonym(canonical, s)

    def load_custom_synonyms(self, path: Path) -> int:
        """Load synonyms from a JSON file (``{canonical: [synonym, ...]}``).

        Returns the number of synonyms read.
        """
        with open(path, encoding="utf-8") as fh:
            data: Dict[str, Sequence[str]] = json.load(fh)
        self.add_synonyms(data)
        count = sum(1 if isinstance(v, str) else len(v) for v in data.values())
        logger.info("Loaded %d custom header synonyms from %s", count, path)
        return count

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def synonyms_for(self, field_: CanonicalField) -> List[str]:
        """Return a *copy* of the synonym list for one field."""
        for f, synonyms in self._rules:
            if f is field_:
                return list(synonyms)
        return []
