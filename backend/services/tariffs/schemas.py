"""
Schemas for the facility tariff editor (Pydantic)

This module defines every data structure the tariff engine works with:
- stored tariff tiers and their editable counterparts
- the two granularity flags and the scope descriptors they produce
- facility topology (sections and permitted bike types)
- the change log entries and the save payload

The wire format is camelCase (rowId, durationHours, ...); all models accept
both the alias and the Python field name.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FACILITY_SCOPE_KEY = "facility"
INCOMPATIBLE_SCOPE_KEY = "__incompatible__"

ScopeKind = Literal["facility", "section", "bikeType"]
ChangeType = Literal["created", "updated", "deleted"]
EditableField = Literal["duration_hours", "cost"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GranularityFlags(CamelModel):
    """
    Pricing granularity of a facility.

    Both True means one price ladder for the whole facility, both False means
    one ladder per (section, bike type) pair.
    """
    uniform_across_sections: bool = True
    uniform_across_bike_types: bool = True


class TariffTierRow(CamelModel):
    """
    One tier of a tiered-pricing ladder.

    Example:
    {
      "rowId": 12,
      "order": 1,
      "durationHours": 24,
      "cost": 1.5,
      "sectionId": 3
    }
    """
    row_id: Optional[int] = Field(default=None, description="Storage identity, absent for new rows")
    scope_key: Optional[str] = Field(default=None, description="Scope the row belongs to, set by classification")
    order: Optional[int] = Field(default=None, description="1-based position within the scope's ladder")
    duration_hours: Optional[float] = Field(default=None, description="Length of this tier in hours")
    cost: Optional[float] = Field(default=None, description="Price for this tier")

    section_id: Optional[int] = None
    bike_type_id: Optional[int] = None
    section_bike_type_id: Optional[int] = None


class EditableRow(TariffTierRow):
    """A tariff tier plus the metadata the editor needs while the operator types."""
    key: str = Field(..., min_length=1, description="Stable row identity within the edit session")
    is_placeholder: bool = False
    is_new: bool = False
    order_token: int = Field(default=0, description="Sort key; insertion order for new rows")


# ---------------------------------------------------------------
# Scope descriptors (sum type on "kind")
# ---------------------------------------------------------------

class _ScopeBase(CamelModel):
    key: str = Field(..., min_length=1)
    label: str
    section_id: Optional[int] = None
    section_label: Optional[str] = None
    bike_type_id: Optional[int] = None
    bike_type_label: Optional[str] = None
    section_bike_type_id: Optional[int] = None


class FacilityScope(_ScopeBase):
    kind: Literal["facility"] = "facility"
    key: str = FACILITY_SCOPE_KEY


class SectionScope(_ScopeBase):
    kind: Literal["section"] = "section"


class BikeTypeScope(_ScopeBase):
    kind: Literal["bikeType"] = "bikeType"


ScopeDescriptor = Annotated[
    Union[FacilityScope, SectionScope, BikeTypeScope],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------
# Facility topology
# ---------------------------------------------------------------

class PermittedBikeType(CamelModel):
    section_bike_type_id: Optional[int] = None
    bike_type_id: Optional[int] = None
    allowed: bool = True


class Section(CamelModel):
    section_id: int
    title: Optional[str] = None
    permitted_bike_types: List[PermittedBikeType] = Field(default_factory=list)


class BikeType(CamelModel):
    bike_type_id: int
    name: Optional[str] = None


# ---------------------------------------------------------------
# Load / save shapes
# ---------------------------------------------------------------

class TariffData(CamelModel):
    """Authoritative tariff state of a facility as returned by load and save."""
    uniform_across_sections: bool
    uniform_across_bike_types: bool
    tiers: List[TariffTierRow] = Field(default_factory=list)

    @property
    def flags(self) -> GranularityFlags:
        return GranularityFlags(
            uniform_across_sections=self.uniform_across_sections,
            uniform_across_bike_types=self.uniform_across_bike_types,
        )


class TariffTierPayload(CamelModel):
    order: int = Field(..., ge=1)
    duration_hours: Optional[float] = None
    cost: Optional[float] = None


class TariffSavePayload(CamelModel):
    """
    Body of a tariff save request.

    Keys are only present when something actually changed: a save that only
    toggles a flag does not carry tier data, and vice versa.
    """
    uniform_across_sections: Optional[bool] = None
    uniform_across_bike_types: Optional[bool] = None
    tiers: Optional[Dict[str, List[TariffTierPayload]]] = None

    def is_empty(self) -> bool:
        return (
            self.uniform_across_sections is None
            and self.uniform_across_bike_types is None
            and self.tiers is None
        )

    def to_request(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class ChangeEntry(CamelModel):
    scope: Optional[ScopeDescriptor] = None
    type: ChangeType
    before: Optional[TariffTierRow] = None
    after: Optional[TariffTierRow] = None


class FocusRequest(CamelModel):
    """Emitted by an edit: the UI should put the cursor back into this field."""
    scope_key: str
    row_key: str
    field: EditableField
