"""
Tabular Tokenizer.

Splits one row of delimited text into trimmed fields.  Each row is
tokenized on its own, so a malformed row (unbalanced quotes, stray
delimiters) only ever damages itself and never the rows after it.

Rules applied (in order):
1. Trailing delimiters are dropped from the raw row.
2. A row wrapped in one pair of quotes with no inner quotes is unwrapped.
3. Quoted segments may contain the delimiter; ``""`` inside a quoted
   field is one literal quote.
4. Whitespace and surrounding quote characters are trimmed from every field.
5. Trailing blank fields are dropped.
"""

from __future__ import annotations

import csv
from typing import Iterable, List, Sequence

from statement_ingest.logging_setup import get_logger

logger = get_logger("tokenizer")

DEFAULT_DELIMITER = ","
_WHITESPACE = " \t\r\n\f\v"


def _unwrap_row(row: str, delimiter: str) -> str:
    # a whitespace delimiter is kept, so leading blank fields survive
    pad = _WHITESPACE.replace(delimiter, "")
    clean = row.strip(pad).rstrip(delimiter).rstrip(pad)
    if (
        len(clean) >= 2
        and clean.startswith('"')
        and clean.endswith('"')
        and '"' not in clean[1:-1]
    ):
        return clean[1:-1]
    return clean


def _trim_field(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1].strip()
    return value


def split_row(row: str, delimiter: str = DEFAULT_DELIMITER) -> List[str]:
    """Split one delimited row into trimmed fields.

    Parameters
    ----------
    row:
        A single physical line of the source.
    delimiter:
        Single-character field separator.

    Returns
    -------
    list[str]
        Fields with trailing blanks removed.  An empty row yields ``[]``.
    """
    clean = _unwrap_row(row, delimiter)
    if not clean:
        return []

    reader = csv.reader(
        [clean],
        delimiter=delimiter,
        quotechar='"',
        doublequote=True,
        skipinitialspace=True,
        strict=False,
    )
    try:
        fields = next(reader)
    except (csv.Error, StopIteration) as exc:
        logger.warning("Could not tokenize row %r: %s", clean[:80], exc)
        return []

    fields = [_trim_field(f) for f in fields]
    while fields and not fields[-1]:
        fields.pop()
    return fields


def _count_outside_quotes(line: str, ch: str) -> int:
    count = 0
    in_quotes = False
    for c in line:
        if c == '"':
            in_quotes = not in_quotes
        elif c == ch and not in_quotes:
            count += 1
    return count


def detect_delimiter(
    header_line: str,
    candidates: Sequence[str] = (",", ";", "\t", "|"),
) -> str:
    """Pick the candidate that occurs most often outside quotes.

    Ties go to the earlier candidate; no occurrences at all means the
    first candidate.
    """
    best = candidates[0] if candidates else DEFAULT_DELIMITER
    best_count = 0
    for cand in candidates:
        n = _count_outside_quotes(header_line, cand)
        if n > best_count:
            best, best_count = cand, n
    logger.debug("detect_delimiter: %r (count=%d)", best, best_count)
    return best


def split_lines(text: str) -> List[str]:
    """Split raw text into non-blank physical lines."""
    return [line for line in text.splitlines() if line.strip()]


def tokenize_rows(
    lines: Iterable[str], delimiter: str = DEFAULT_DELIMITER
) -> List[List[str]]:
    """Convenience: ``split_row`` over many lines."""
    return [split_row(line, delimiter) for line in lines]
