"""Entity kinds and parsed entity records.

Three kinds of entity share one wide row layout:

- **Agency**: federal buying organizations, keyed by agency code
- **Manufacturer (OEM)**: product makers, keyed by manufacturer ID
- **Vendor**: resellers and integrators, keyed by unique entity identifier (UEI)

Each row of a kind's backing table becomes one `EntityRecord`. Records are
frozen Pydantic models; a refresh replaces whole collections of records rather
than mutating them.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityKind(str, Enum):
    """The fixed entity categories, each with its own backing table."""

    AGENCY = "agency"
    OEM = "oem"
    VENDOR = "vendor"

    @property
    def table_name(self) -> str:
        """Name of the backing table holding this kind's rows."""
        return _TABLE_NAMES[self]

    @property
    def label(self) -> str:
        """Plural display label used by report and dashboard consumers."""
        return _LABELS[self]

    @property
    def id_field(self) -> str:
        """Semantic name of the identifying column for this kind."""
        return _ID_FIELDS[self]


_TABLE_NAMES = {
    EntityKind.AGENCY: "Agency",
    EntityKind.OEM: "OEM",
    EntityKind.VENDOR: "Vendor",
}

_LABELS = {
    EntityKind.AGENCY: "Agencies",
    EntityKind.OEM: "OEMs",
    EntityKind.VENDOR: "Vendors",
}

_ID_FIELDS = {
    EntityKind.AGENCY: "agency_code",
    EntityKind.OEM: "manufacturer_id",
    EntityKind.VENDOR: "uei",
}

# Load-cycle order; also the order of the combined "all kinds" listing.
KIND_ORDER: tuple[EntityKind, ...] = (EntityKind.AGENCY, EntityKind.OEM, EntityKind.VENDOR)


class EntityRecord(BaseModel):
    """One parsed row of an entity table.

    Schema fields live in `fields`, keyed by their semantic name: scalar
    columns hold the raw cell value, JSON-bearing columns hold the decoded
    payload or None. The derived attributes are computed from this record's
    own payloads only.

    Attributes:
        id: Stable identifier of the form ``"{kind}_{row index}"``.
        name: Trimmed display name (rows without one never become records).
        kind: The entity category.
        row_index: Zero-based index of the source row (the header is row 0).
        fields: Semantic field name -> scalar or parsed payload.
        total_obligations: Total obligated amount derived from `obligations`.
        tier: Tier label from the OneGov tier or tier summary payload.
        has_ai_products: Whether the AI product payload has any entries.
        fas_table_url: Normalized FAS data-table URL, empty when absent.
        bic_table_url: Normalized BIC data-table URL, empty when absent.
    """

    model_config = {"frozen": True}

    id: str = Field(description="Stable identifier, e.g. 'agency_12'.")
    name: str = Field(min_length=1, description="Display name of the entity.")
    kind: EntityKind
    row_index: int = Field(ge=1, description="Source row index; row 0 is the header.")
    fields: dict[str, Any] = Field(default_factory=dict)
    total_obligations: float = 0.0
    tier: str | None = None
    has_ai_products: bool = False
    fas_table_url: str = ""
    bic_table_url: str = ""

    def get(self, field_name: str, default: Any = None) -> Any:
        """Return a schema field's value, or `default` when it is absent or None."""
        value = self.fields.get(field_name)
        return default if value is None else value

    def __getitem__(self, field_name: str) -> Any:
        return self.fields[field_name]

    @property
    def parent_company(self) -> Any:
        return self.fields.get("parent_company")

    @property
    def identifier(self) -> Any:
        """Value of the kind-specific identifying column."""
        return self.fields.get(self.kind.id_field)
