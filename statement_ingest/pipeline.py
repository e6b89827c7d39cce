"""
Ingestion Router and fallback cascade.

The single entry point that wires every layer together:

    bytes / text ──► router ──► delimited text ─┐
                        │                        ├─► STRUCTURAL ─(empty?)─► GENERATIVE ─► DONE
                        ├──► spreadsheet ────────┘
                        └──► PDF text ───────────────────────────────────► GENERATIVE ─► DONE

    SMS text ──► GENERATIVE ─(rejected?)─► DETERMINISTIC ─► DONE

Every public method returns a result object.  Unreadable input is reported
as ``success=False`` with ``error_code="unreadable_source"``; all other
failures are absorbed by the cascade.

Usage
-----
>>> import asyncio
>>> from statement_ingest.pipeline import StatementIngestionPipeline
>>>
>>> pipe = StatementIngestionPipeline()
>>> result = asyncio.run(pipe.ingest_text("Date,Description,Amount\\n..."))
>>> print(result.to_dict())
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from statement_ingest.category_matcher import CategoryMatcher
from statement_ingest.classifier import CategoryClassifier
from statement_ingest.completion_client import CancellationToken, CompletionClient
from statement_ingest.config import PipelineConfig
from statement_ingest.date_parser import Clock, system_today
from statement_ingest.errors import (
    GenerativeNetworkFailure,
    IngestionError,
    UnreadableSource,
    ZeroTransactionsExtracted,
)
from statement_ingest.generative import GenerativeExtractor
from statement_ingest.header_resolver import HeaderResolver
from statement_ingest.logging_setup import configure_logging, get_logger
from statement_ingest.normalizer import AmountNormalizer
from statement_ingest.pdf_text import extract_text
from statement_ingest.schema import (
    ExtractionMethod,
    ExtractionResult,
    ParsedSMSData,
    Stage,
)
from statement_ingest.schema_builder import SchemaBuilder
from statement_ingest.sms import SmsExtractor
from statement_ingest.spreadsheet import sheet_to_delimited_text
from statement_ingest.tabular import TabularParser
from statement_ingest.validator import TransactionValidator

logger = get_logger("pipeline")

SheetToText = Callable[[bytes], str]
PdfToText = Callable[[bytes, int], str]


class SourceKind(str, Enum):
    DELIMITED = "delimited"
    SPREADSHEET = "spreadsheet"
    PDF = "pdf"


_SPREADSHEET_EXTENSIONS = frozenset({".xlsx", ".xlsm", ".xls"})
_SPREADSHEET_MIME_TYPES = frozenset({
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
})
_PDF_EXTENSIONS = frozenset({".pdf"})
_PDF_MIME_TYPES = frozenset({"application/pdf"})


def detect_source_kind(filename: str, mime_type: Optional[str] = None) -> SourceKind:
    """Pick a strategy from the file extension, then the MIME type."""
    suffix = Path(filename or "").suffix.lower()
    mime = (mime_type or "").split(";", 1)[0].strip().lower()

    if suffix in _PDF_EXTENSIONS or (not suffix and mime in _PDF_MIME_TYPES):
        return SourceKind.PDF
    if suffix in _SPREADSHEET_EXTENSIONS or (not suffix and mime in _SPREADSHEET_MIME_TYPES):
        return SourceKind.SPREADSHEET
    return SourceKind.DELIMITED


def decode_text(content: bytes) -> str:
    """UTF-8 (BOM tolerated), else Latin-1."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("Content is not UTF-8; decoding as Latin-1")
        return content.decode("latin-1")


def _read_source(convert: Callable[..., str], *args: Any) -> str:
    """Run a conversion collaborator; any failure means the source is unreadable."""
    try:
        return convert(*args)
    except UnreadableSource:
        raise
    except Exception as exc:
        raise UnreadableSource(
            f"{type(exc).__name__} while reading source: {exc}"
        ) from exc


class StatementIngestionPipeline:
    """Routes one source to a strategy and runs the fallback cascade.

    Parameters
    ----------
    config:
        All tuneable knobs.
    completion_client:
        External text-completion service.  ``None`` disables the generative
        stage; documents then stop after the structural stage and SMS goes
        straight to the deterministic extractor.
    sheet_to_text, pdf_to_text:
        Conversion collaborators (openpyxl and pdfplumber by default).
    clock:
        "Today" for date fallbacks and the future-date check.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        completion_client: Optional[CompletionClient] = None,
        sheet_to_text: SheetToText = sheet_to_delimited_text,
        pdf_to_text: PdfToText = extract_text,
        clock: Clock = system_today,
    ) -> None:
        self._config = config or PipelineConfig()

        # Bootstrap logging before anything else
        configure_logging(level=self._config.log_level, log_file=self._config.log_file)

        self._sheet_to_text = sheet_to_text
        self._pdf_to_text = pdf_to_text
        self._clock = clock

        # Construct layers
        self._resolver = HeaderResolver()
        self._normalizer = AmountNormalizer()
        self._classifier = CategoryClassifier()
        self._matcher = CategoryMatcher(self._config.categories)
        self._tabular = TabularParser(
            config=self._config.tabular,
            resolver=self._resolver,
            normalizer=self._normalizer,
            classifier=self._classifier,
            clock=clock,
        )
        self._generative: Optional[GenerativeExtractor] = None
        if completion_client is not None:
            self._generative = GenerativeExtractor(
                completion_client,
                config=self._config.generative,
                category_matcher=self._matcher,
                classifier=self._classifier,
                normalizer=self._normalizer,
                clock=clock,
                day_first=self._config.tabular.day_first,
            )
        self._sms = SmsExtractor(
            generative=self._generative,
            config=self._config.sms,
            classifier=self._classifier,
            category_matcher=self._matcher,
            normalizer=self._normalizer,
        )
        self._validator = TransactionValidator(self._config.validation, clock=clock)

        if self._config.custom_synonym_path:
            self._resolver.load_custom_synonyms(self._config.custom_synonym_path)

        logger.info(
            "Pipeline initialised — generative=%s, delimiters=%r, day_first=%s",
            "on" if self._generative else "off",
            self._config.tabular.candidate_delimiters,
            self._config.tabular.day_first,
        )

    # ------------------------------------------------------------------ #
    # Entry points (one per input form)
    # ------------------------------------------------------------------ #

    async def ingest_file(
        self,
        path: Union[str, Path],
        cancel: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """Read a file from disk and ingest it."""
        path = Path(path)
        try:
            content = path.read_bytes()
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
            return SchemaBuilder.build_failure(
                UnreadableSource(f"Cannot read {path.name}: {exc}"),
                ExtractionMethod.STRUCTURAL,
            )
        return await self.ingest_bytes(path.name, content, cancel=cancel)

    async def ingest_bytes(
        self,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """Ingest uploaded content, routed by file name and MIME type."""
        kind = detect_source_kind(filename, mime_type)
        logger.info("Routing %r (%d bytes) as %s", filename, len(content), kind.value)

        if kind is SourceKind.PDF:
            try:
                text = _read_source(self._pdf_to_text, content, self._config.pdf_max_pages)
            except UnreadableSource as exc:
                logger.error("Unreadable PDF %r: %s", filename, exc)
                return SchemaBuilder.build_failure(exc, ExtractionMethod.GENERATIVE)
            return await self._run_document(text, Stage.GENERATIVE, cancel)

        if kind is SourceKind.SPREADSHEET:
            try:
                text = _read_source(self._sheet_to_text, content)
            except UnreadableSource as exc:
                logger.error("Unreadable spreadsheet %r: %s", filename, exc)
                return SchemaBuilder.build_failure(exc, ExtractionMethod.STRUCTURAL)
            return await self._run_document(text, Stage.STRUCTURAL, cancel)

        return await self._run_document(decode_text(content), Stage.STRUCTURAL, cancel)

    async def ingest_text(
        self,
        text: str,
        cancel: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """Ingest raw statement text (delimited, or free text for the fallback)."""
        return await self._run_document(text, Stage.STRUCTURAL, cancel)

    async def parse_sms(
        self,
        text: str,
        cancel: Optional[CancellationToken] = None,
    ) -> ParsedSMSData:
        """Read one bank / payment alert."""
        return await self._sms.parse(text, cancel)

    # ------------------------------------------------------------------ #
    # Cascade
    # ------------------------------------------------------------------ #

    async def _run_document(
        self,
        text: str,
        start: Stage,
        cancel: Optional[CancellationToken],
    ) -> ExtractionResult:
        """Drive STRUCTURAL → GENERATIVE → DONE from *start*."""
        stage = start
        result: Optional[ExtractionResult] = None

        while stage is not Stage.DONE:
            if stage is Stage.STRUCTURAL:
                result = self._run_structural(text)
                next_stage = Stage.DONE if result.success else Stage.GENERATIVE

            elif stage is Stage.GENERATIVE:
                skip = self._generative_skip_reason(text)
                if skip is None:
                    result = await self._generative.extract_transactions(text, cancel)
                else:
                    logger.info("Generative stage skipped: %s", skip.args[0])
                    if result is None:
                        result = SchemaBuilder.build_failure(skip, ExtractionMethod.GENERATIVE)
                next_stage = Stage.DONE

            else:
                raise ValueError(f"Stage {stage.value!r} does not apply to documents")

            logger.debug("Cascade %s → %s", stage.value, next_stage.value)
            stage = next_stage

        if result is None:
            raise RuntimeError(f"Cascade starting at {start.value!r} produced no result")
        return self._finish(result)

    def _run_structural(self, text: str) -> ExtractionResult:
        try:
            outcome = self._tabular.parse(text)
        except IngestionError as exc:
            logger.info("Structural stage gave nothing [%s]: %s", exc.code, exc)
            return SchemaBuilder.build_failure(exc, ExtractionMethod.STRUCTURAL)
        return SchemaBuilder.build_result(
            outcome.transactions,
            ExtractionMethod.STRUCTURAL,
            skipped_rows=outcome.skipped_rows,
        )

    def _generative_skip_reason(self, text: str) -> Optional[IngestionError]:
        if self._generative is None:
            return GenerativeNetworkFailure("No completion service configured")
        if len(text.strip()) < self._config.generative.min_input_chars:
            return ZeroTransactionsExtracted(
                f"Text too short for generative extraction "
                f"(< {self._config.generative.min_input_chars} characters)"
            )
        return None

    def _finish(self, result: ExtractionResult) -> ExtractionResult:
        """Attach the validation report to a successful result."""
        if not result.success:
            logger.warning(
                "Ingestion failed — method=%s, error_code=%s",
                result.method.value,
                result.error_code,
            )
            return result

        report = self._validator.validate(result.transactions)
        logger.info(
            "Ingestion complete — method=%s, transactions=%d, skipped=%d, warnings=%d",
            result.method.value,
            result.total_count,
            result.skipped_rows,
            len(report.errors) + len(report.warnings),
        )
        return dataclasses.replace(
            result,
            warnings=result.warnings + tuple(report.errors) + tuple(report.warnings),
        )

    # ------------------------------------------------------------------ #
    # Utility
    # ------------------------------------------------------------------ #

    def add_synonyms(self, mapping: dict[str, list[str]]) -> None:
        """Hot-add header synonyms after pipeline construction."""
        self._resolver.add_synonyms(mapping)

    @property
    def generative_enabled(self) -> bool:
        return self._generative is not None
