"""Row parsing: raw table rows to typed entity records.

A row is a positional list of cell values. The parser reads each schema field
at its registered column, decodes JSON-bearing cells, and computes the derived
attributes of `EntityRecord`.

Per-cell problems never escape the parser. A cell that fails to decode is
logged and stored as None, and a row with a blank name is skipped. One bad
row must not abort a load of several hundred.
"""

import json
from typing import Any, Mapping, Sequence

from fitmarket.entity import EntityKind, EntityRecord
from fitmarket.extraction import resolve_path, sum_numeric_values, to_number
from fitmarket.logging import PprintLogger, setup_logging
from fitmarket.schema import SchemaRegistry

_EMPTY_JSON_LITERALS = frozenset({"", "{}", "[]"})
_NO_URL_MARKERS = frozenset({"none", "n/a"})


class MalformedCellError(ValueError):
    """A JSON-bearing cell that could not be decoded."""


def decode_json_cell(value: Any) -> Any:
    """Decode a JSON-bearing cell value.

    Returns None for blank values and the literals ``{}`` and ``[]``. Values
    that are already structured (the source returned a dict or list, or a bare
    number) pass through unchanged.

    Raises:
        MalformedCellError: If the text is not valid JSON.
    """
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    if text in _EMPTY_JSON_LITERALS:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedCellError(f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}") from exc
    except RecursionError as exc:
        raise MalformedCellError("JSON nested too deeply to decode") from exc


def extract_total_obligations(obligations: Any) -> float:
    """Total obligated amount from an obligations payload.

    Priority: a direct ``total_obligated``, then ``summary.total_obligations``,
    then the sum of ``fiscal_year_obligations``. Returns 0.0 when none apply.
    """
    if not isinstance(obligations, Mapping):
        return 0.0
    direct = obligations.get("total_obligated")
    if direct:
        return to_number(direct)
    nested = resolve_path(obligations, "summary.total_obligations")
    if nested:
        return to_number(nested)
    if isinstance(obligations.get("fiscal_year_obligations"), Mapping):
        return sum_numeric_values(obligations["fiscal_year_obligations"])
    return 0.0


def extract_tier(fields: Mapping[str, Any]) -> str | None:
    """Tier label: OneGov ``mode_tier`` first, then the tier summary's ``tier``."""
    for path in ("one_gov_tier.mode_tier", "sum_tier.tier"):
        tier = resolve_path(fields, path)
        if tier:
            return str(tier)
    return None


def has_ai_products(fields: Mapping[str, Any]) -> bool:
    ai_product = fields.get("ai_product")
    return isinstance(ai_product, (Mapping, list)) and len(ai_product) > 0


def normalize_table_url(value: Any) -> str:
    """Trim a data-table URL cell; blanks, "none" and "N/A" become ""."""
    if value is None:
        return ""
    text = str(value).strip()
    if not text or text.lower() in _NO_URL_MARKERS:
        return ""
    return text


class RowParser:
    """Turns raw rows of an entity table into `EntityRecord` instances.

    The parser holds no state between rows: parsing the same row twice yields
    equal records.

    Example:
        ```python
        parser = RowParser(default_registry())
        records = parser.parse_table(EntityKind.OEM, grid)  # grid[0] is the header
        ```
    """

    def __init__(self, registry: SchemaRegistry, logger: PprintLogger | None = None):
        self.registry = registry
        self.logger = logger or setup_logging("fitmarket.parser")

    def parse_json(self, value: Any, *, kind: EntityKind, row_index: int, field_name: str) -> Any:
        """Decode a JSON-bearing cell, logging and returning None on failure."""
        try:
            return decode_json_cell(value)
        except MalformedCellError as exc:
            self.logger.warning(
                {
                    "message": "Malformed JSON cell stored as null",
                    "kind": kind.value,
                    "row_index": row_index,
                    "field": field_name,
                    "error": str(exc),
                }
            )
            return None

    def parse_row(self, kind: EntityKind, raw_row: Sequence[Any], row_index: int) -> EntityRecord | None:
        """Parse one data row.

        Args:
            kind: Entity kind whose schema describes the row.
            raw_row: Cell values in column order (shorter rows read as blank).
            row_index: Index of the row in its table; the header is row 0.

        Returns:
            The parsed record, or None if the name cell is blank.
        """
        columns = self.registry.fields_for(kind)

        def cell(position: int) -> Any:
            return raw_row[position - 1] if position - 1 < len(raw_row) else None

        raw_name = cell(columns["name"])
        name = str(raw_name).strip() if raw_name is not None else ""
        if not name:
            return None

        fields: dict[str, Any] = {}
        for field_name, position in columns.items():
            if field_name == "name":
                continue
            value = cell(position)
            if self.registry.is_json_field(field_name):
                fields[field_name] = self.parse_json(value, kind=kind, row_index=row_index, field_name=field_name)
            else:
                fields[field_name] = value

        return EntityRecord(
            id=f"{kind.value}_{row_index}",
            name=name,
            kind=kind,
            row_index=row_index,
            fields=fields,
            total_obligations=extract_total_obligations(fields.get("obligations")),
            tier=extract_tier(fields),
            has_ai_products=has_ai_products(fields),
            fas_table_url=normalize_table_url(fields.get("fas_data_table")),
            bic_table_url=normalize_table_url(fields.get("bic_data_table")),
        )

    def parse_table(self, kind: EntityKind, grid: Sequence[Sequence[Any]]) -> list[EntityRecord]:
        """Parse every data row of a table, skipping the header at index 0."""
        records: list[EntityRecord] = []
        skipped = 0
        for row_index in range(1, len(grid)):
            record = self.parse_row(kind, grid[row_index], row_index)
            if record is None:
                skipped += 1
                continue
            records.append(record)
        self.logger.debug(
            {"message": "Parsed table", "kind": kind.value, "records": len(records), "skipped_rows": skipped}
        )
        return records
