"""
Statement Ingest — Bank Statement & SMS Extraction Engine.

Turns heterogeneous bank statement exports (delimited text, spreadsheets,
PDF text) and single payment-alert messages into validated transactions.

Structural parsing is deterministic and rule-based; an external generative
text service is consulted only as a fallback, and its answers are always
coerced and validated before they reach a result.
"""

__version__ = "1.0.0"
__author__ = "Statement Ingest Team"

from statement_ingest.pipeline import StatementIngestionPipeline  # noqa: F401
