"""Column layout and field classification for the entity tables.

Every kind's backing table carries the same 31 columns; only the identifier in
column 1 differs. The registry maps semantic field names to 1-based column
positions and classifies each field as JSON-bearing or scalar. Both the layout
and the classification are fixed: a change to a backing table's layout means
changing this module, never inferring positions at runtime.

The classification is a closed table. `SchemaRegistry` checks at construction
that every schema field is classified exactly once, so an unclassified column
is an error when the registry is built rather than a silent scalar default.
"""

from types import MappingProxyType
from typing import Mapping

from pydantic import BaseModel, Field, model_validator

from fitmarket.entity import KIND_ORDER, EntityKind

# Positions 2 onwards, shared by every kind.
SHARED_COLUMNS: tuple[tuple[str, int], ...] = (
    ("name", 2),
    ("parent_company", 3),
    ("obligations", 4),
    ("small_business", 5),
    ("sum_tier", 6),
    ("sum_type", 7),
    ("contract_vehicle", 8),
    ("funding_department", 9),
    ("discount", 10),
    ("top_ref_piid", 11),
    ("top_piid", 12),
    ("active_contracts", 13),
    ("discount_offerings", 14),
    ("ai_product", 15),
    ("ai_category", 16),
    ("top_bic_products", 17),
    ("reseller", 18),
    ("bic_reseller", 19),
    ("bic_oem", 20),
    ("fas_oem", 21),
    ("funding_agency", 22),
    ("bic_top_products_per_agency", 23),
    ("one_gov_tier", 24),
    ("fas_data_table", 25),
    ("fas_timestamp", 26),
    ("bic_data_table", 27),
    ("bic_timestamp", 28),
    ("usai_profile", 29),
    ("website", 30),
    ("linkedin", 31),
)

IDENTIFIER_POSITION = 1

JSON_FIELDS: frozenset[str] = frozenset(
    {
        "obligations",
        "small_business",
        "sum_tier",
        "sum_type",
        "contract_vehicle",
        "funding_department",
        "discount",
        "top_ref_piid",
        "top_piid",
        "active_contracts",
        "discount_offerings",
        "ai_product",
        "ai_category",
        "top_bic_products",
        "reseller",
        "bic_reseller",
        "bic_oem",
        "fas_oem",
        "funding_agency",
        "bic_top_products_per_agency",
        "one_gov_tier",
        "usai_profile",
    }
)

SCALAR_FIELDS: frozenset[str] = frozenset(
    {
        "agency_code",
        "manufacturer_id",
        "uei",
        "name",
        "parent_company",
        "fas_data_table",
        "fas_timestamp",
        "bic_data_table",
        "bic_timestamp",
        "website",
        "linkedin",
    }
)


class ColumnSchema(BaseModel, frozen=True):
    """Ordered field -> 1-based column position mapping for one entity kind."""

    kind: EntityKind
    table_name: str = Field(min_length=1)
    columns: tuple[tuple[str, int], ...] = Field(min_length=2)

    @model_validator(mode="after")
    def check_layout(self) -> "ColumnSchema":
        names = [name for name, _ in self.columns]
        positions = [position for _, position in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"{self.kind.value} schema repeats a field name")
        if len(set(positions)) != len(positions):
            raise ValueError(f"{self.kind.value} schema repeats a column position")
        if any(position < 1 for position in positions):
            raise ValueError(f"{self.kind.value} schema positions must be 1-based")
        if "name" not in names:
            raise ValueError(f"{self.kind.value} schema has no name field")
        return self

    @property
    def width(self) -> int:
        """Number of columns a row must span to cover every field."""
        return max(position for _, position in self.columns)

    def as_mapping(self) -> Mapping[str, int]:
        return MappingProxyType(dict(self.columns))


def build_column_schema(kind: EntityKind) -> ColumnSchema:
    """Build the standard schema for a kind: its identifier plus the shared columns."""
    return ColumnSchema(
        kind=kind,
        table_name=kind.table_name,
        columns=((kind.id_field, IDENTIFIER_POSITION),) + SHARED_COLUMNS,
    )


class SchemaRegistry:
    """Immutable lookup of column schemas and JSON-field classification.

    Construction validates that:
        - every kind has exactly one schema
        - every schema field appears in exactly one of the JSON/scalar sets
        - all kinds agree on every field except their identifier

    Example:
        ```python
        registry = default_registry()
        registry.fields_for(EntityKind.OEM)["reseller"]   # 18
        registry.is_json_field("reseller")                # True
        ```
    """

    def __init__(
        self,
        schemas: Mapping[EntityKind, ColumnSchema],
        json_fields: frozenset[str] = JSON_FIELDS,
        scalar_fields: frozenset[str] = SCALAR_FIELDS,
    ):
        missing = [kind.value for kind in KIND_ORDER if kind not in schemas]
        if missing:
            raise ValueError(f"no column schema for kinds: {missing}")
        overlap = json_fields & scalar_fields
        if overlap:
            raise ValueError(f"fields classified as both JSON and scalar: {sorted(overlap)}")

        classified = json_fields | scalar_fields
        in_schemas = {name for schema in schemas.values() for name, _ in schema.columns}
        orphaned = classified - in_schemas
        if orphaned:
            raise ValueError(f"classified fields missing from every schema: {sorted(orphaned)}")

        shared: dict[str, int] | None = None
        for kind, schema in schemas.items():
            if schema.kind is not kind:
                raise ValueError(f"schema registered under {kind.value} describes {schema.kind.value}")
            unclassified = [name for name, _ in schema.columns if name not in classified]
            if unclassified:
                raise ValueError(f"{kind.value} fields have no classification: {unclassified}")
            body = {name: position for name, position in schema.columns if name != kind.id_field}
            if shared is None:
                shared = body
            elif body != shared:
                raise ValueError(f"{kind.value} schema disagrees with other kinds outside its identifier")

        self._schemas = MappingProxyType(dict(schemas))
        self._json_fields = json_fields
        self._scalar_fields = scalar_fields

    def schema_for(self, kind: EntityKind) -> ColumnSchema:
        return self._schemas[kind]

    def fields_for(self, kind: EntityKind) -> Mapping[str, int]:
        """Return the ordered field -> 1-based column position mapping for a kind."""
        return self._schemas[kind].as_mapping()

    def is_json_field(self, field_name: str) -> bool:
        """Whether the field holds a JSON payload (independent of kind)."""
        return field_name in self._json_fields

    @property
    def json_fields(self) -> frozenset[str]:
        return self._json_fields

    def ordered_json_fields(self, kind: EntityKind = EntityKind.AGENCY) -> list[str]:
        """JSON-bearing fields in column order."""
        return [name for name, _ in self._schemas[kind].columns if name in self._json_fields]


def default_registry() -> SchemaRegistry:
    """Registry for the standard Agency/OEM/Vendor table layout."""
    return SchemaRegistry({kind: build_column_schema(kind) for kind in KIND_ORDER})
