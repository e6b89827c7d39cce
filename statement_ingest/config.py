"""
Configuration module for Statement Ingest.

All tuneable parameters (thresholds, limits, endpoints, feature flags)
live here.  Nothing is hard-coded in business logic modules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from statement_ingest.schema import ConfidenceLevel


@dataclass(frozen=True)
class TabularConfig:
    """Controls the structural (delimited text) parser."""

    # Delimiters considered when sniffing the header row, in preference order
    candidate_delimiters: Tuple[str, ...] = (",", ";", "\t", "|")

    # Rows with fewer fields than this are not transactions
    min_columns: int = 2

    # Ambiguous numeric dates such as 03/04/2024 are read day-first
    day_first: bool = True


@dataclass(frozen=True)
class CategoryMatchConfig:
    """Controls fuzzy coercion of free-form category labels."""

    # Minimum similarity score (0–100) to accept a fuzzy category match
    fuzzy_threshold: float = 80.0

    # If two candidates are within this delta of each other the match is
    # ambiguous and rejected in favour of the keyword classifier.
    fuzzy_ambiguity_delta: float = 5.0


@dataclass(frozen=True)
class GenerativeConfig:
    """Controls the external text-completion fallback."""

    endpoint: str = (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "{model}:generateContent"
    )
    model: str = "gemini-2.5-flash"

    # Environment variable holding the API key
    api_key_env: str = "GEMINI_API_KEY"

    # Upper bound on a single request, including connection setup
    timeout_seconds: float = 30.0

    # Raw text beyond this many characters is cut before prompting
    max_input_chars: int = 12_000

    # Documents shorter than this are not worth a generative call
    min_input_chars: int = 50

    temperature: float = 0.1


@dataclass(frozen=True)
class SmsConfig:
    """Controls the single-message extractor."""

    # Confidence reported by the deterministic extractor when it found an amount
    fallback_confidence: int = 40

    # Minimum level the generative answer's self-reported confidence must reach
    min_generative_level: ConfidenceLevel = ConfidenceLevel.LOW


@dataclass(frozen=True)
class ValidationConfig:
    """Controls the post-extraction quality report."""

    # Maximum plausible absolute amount; catches unit or column errors
    max_absolute_amount: float = 1e12

    # Flag transactions dated after "today"
    warn_on_future_dates: bool = True

    # Flag rows repeated with the same date, amount, type and description
    warn_on_duplicates: bool = True


@dataclass(frozen=True)
class PipelineConfig:
    """Top-level configuration aggregating all sub-configs."""

    tabular: TabularConfig = field(default_factory=TabularConfig)
    categories: CategoryMatchConfig = field(default_factory=CategoryMatchConfig)
    generative: GenerativeConfig = field(default_factory=GenerativeConfig)
    sms: SmsConfig = field(default_factory=SmsConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    log_level: int = logging.INFO
    # Records are also written here when set
    log_file: Optional[str] = None

    # Optional path to a user-supplied header synonym JSON file that is
    # *merged* with the built-in synonym lists.
    custom_synonym_path: Optional[Path] = None

    # Only the first N pages of a PDF are read
    pdf_max_pages: int = 5
