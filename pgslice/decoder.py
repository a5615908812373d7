"""Row decoding: raw driver values to typed values and SQL literals."""

import json
import logging
import uuid
from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Any

from pgslice.exceptions import DecodeError
from pgslice.models import (
    KIND_INTEGER,
    KIND_JSON,
    KIND_JSONB,
    KIND_OTHER,
    KIND_TEXT,
    KIND_TIMESTAMP,
    KIND_UUID,
    UNSUPPORTED_TYPE,
    ColumnInfo,
    ExtractedRow,
    ExtractionSession,
    TableInfo,
)

logger = logging.getLogger(__name__)

NULL = "NULL"


def quote_literal(text: str) -> str:
    """Single-quote a string for SQL, doubling embedded quotes."""
    return "'" + text.replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def format_timestamp(value: datetime) -> str:
    """Format as YYYY-MM-DDTHH:MM:SS.mmm (UTC for aware values, no zone)."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond // 1000:03d}"


def _as_text(value: Any) -> str:
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def _as_uuid(column: ColumnInfo, value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        try:
            return uuid.UUID(value)
        except ValueError as e:
            raise DecodeError(column.name, column.pg_type, str(e)) from e
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, Sequence):
        # bytes, bytearray or a fixed array of 16 ints
        raw = bytes(value)
        if len(raw) != 16:
            raise DecodeError(
                column.name, column.pg_type, f"expected 16 bytes, got {len(raw)}"
            )
        return uuid.UUID(bytes=raw)
    raise DecodeError(column.name, column.pg_type, f"unexpected {type(value).__name__}")


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def _generic_literal(value: Any) -> str:
    if isinstance(value, bool):
        return quote_literal("true" if value else "false")
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return quote_literal("\\x" + bytes(value).hex())
    return quote_literal(str(value))


def decode_value(column: ColumnInfo, value: Any) -> tuple[Any, str, bool]:
    """
    Decode one raw column value.

    Args:
        column: Column metadata (declared type drives the conversion)
        value: Raw value as returned by the driver

    Returns:
        Tuple of (typed value, SQL literal, used_fallback). used_fallback is
        True when the generic literal path was taken. The typed value of a
        json or jsonb column is its JSON text.

    Raises:
        DecodeError: If a uuid column holds binary data that is not 16 bytes
    """
    if value is None:
        return None, NULL, False

    kind = column.kind

    if kind == KIND_TEXT:
        text = _as_text(value)
        return text, quote_literal(text), False

    if kind == KIND_UUID:
        typed = _as_uuid(column, value)
        return typed, quote_literal(str(typed)), False

    if kind == KIND_TIMESTAMP:
        try:
            typed = _as_datetime(value)
        except ValueError:
            logger.warning(f"Column '{column.name}': unparseable timestamp {value!r}")
            return value, _generic_literal(value), True
        return typed, quote_literal(format_timestamp(typed)), False

    if kind == KIND_INTEGER:
        try:
            typed = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Column '{column.name}': non-integer value {value!r}")
            return value, _generic_literal(value), True
        return typed, str(typed), False

    if kind in (KIND_JSON, KIND_JSONB):
        # str is JSON text; anything else is a value to serialize
        if isinstance(value, (bytes, bytearray, memoryview)):
            value = _as_text(value)
        if not isinstance(value, str):
            text = _compact_json(value)
            return text, quote_literal(text), False
        if kind == KIND_JSON:
            # json keeps its text verbatim
            return value, quote_literal(value), False
        try:
            text = _compact_json(json.loads(value))
        except ValueError:
            logger.warning(f"Column '{column.name}': invalid jsonb text")
            return value, _generic_literal(value), True
        return text, quote_literal(text), False

    return value, _generic_literal(value), True


class RowDecoder:
    """Decode full rows of one table into ExtractedRow objects."""

    def __init__(self, table_info: TableInfo, identity_column: str | None = None):
        self.table_info = table_info
        self.identity_column = identity_column

    def decode(
        self, raw: dict[str, Any], session: ExtractionSession | None = None
    ) -> ExtractedRow:
        """
        Decode a raw row keyed by column name.

        Columns missing from the raw row decode as NULL. Fallback decodes are
        recorded on the session as unsupported-type warnings.
        """
        values: dict[str, Any] = {}
        literals: dict[str, str] = {}

        for col in self.table_info.columns:
            typed, literal, fallback = decode_value(col, raw.get(col.name))
            values[col.name] = typed
            literals[col.name] = literal
            if fallback and col.kind == KIND_OTHER:
                self._report_unsupported(col, session)

        columns = self.table_info.column_names
        identity = values.get(self.identity_column) if self.identity_column else None
        if identity is None:
            identity = tuple(literals[c] for c in columns)

        return ExtractedRow(
            table=self.table_info.name,
            columns=columns,
            values=values,
            literals=literals,
            identity=identity,
        )

    def _report_unsupported(self, col: ColumnInfo, session: ExtractionSession | None):
        if session is None:
            return
        already = any(
            w.kind == UNSUPPORTED_TYPE and w.table == self.table_info.name and w.column == col.name
            for w in session.warnings
        )
        if already:
            return
        logger.warning(
            f"Column '{self.table_info.name}.{col.name}' has type '{col.pg_type}' "
            f"with no dedicated literal format; using generic quoting"
        )
        session.warn(UNSUPPORTED_TYPE, self.table_info.name, col.name, col.pg_type)
