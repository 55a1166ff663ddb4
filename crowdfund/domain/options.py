"""
List options: filter, sort and proximity specifications for gate listings.

Callers may pass a plain mapping or a ListOptions instance. Shapes are
validated with pydantic; the allowed filter and sort fields are checked
per entity type by `parse_list_options`.
"""

import math
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from crowdfund.core.errors import ValidationError
from crowdfund.domain.enums import ListValidationErrorCode, SortDirection

EARTH_RADIUS_KM = 6371.0088


class SortSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    field: str
    direction: SortDirection = SortDirection.ASC


class LocationSpec(BaseModel):
    """Origin and optional radius (km) for nearest-first project listings."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    max_distance: float | None = Field(default=None, gt=0)


class ListOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    filter: dict[str, Any] = Field(default_factory=dict)
    sort: SortSpec | None = None
    location: LocationSpec | None = None
    include_hidden: bool = False


def parse_list_options(
    options: ListOptions | Mapping[str, Any] | None,
    *,
    filter_fields: frozenset[str],
    sort_fields: type[Enum],
    allow_location: bool = False,
    allow_hidden: bool = False,
) -> ListOptions:
    """
    Normalize and check list options for one entity type.

    Raises:
        ValidationError: LIST_OPTIONS_INVALID for a malformed shape,
            FILTER_FIELD_INVALID for an unknown filter key,
            SORT_FIELD_INVALID for an unknown sort field
    """
    if options is None:
        return ListOptions()

    if not isinstance(options, ListOptions):
        if not isinstance(options, Mapping):
            raise ValidationError(
                "List options must be a mapping", ListValidationErrorCode.LIST_OPTIONS_INVALID
            )
        try:
            options = ListOptions.model_validate(dict(options))
        except PydanticValidationError as e:
            raise ValidationError(
                "Malformed list options",
                ListValidationErrorCode.LIST_OPTIONS_INVALID,
                details={"errors": e.errors(include_url=False)},
            ) from e

    unknown = set(options.filter) - filter_fields
    if unknown:
        raise ValidationError(
            f"Unknown filter fields: {sorted(unknown)}",
            ListValidationErrorCode.FILTER_FIELD_INVALID,
            details={"allowed": sorted(filter_fields)},
        )

    if options.sort is not None and options.sort.field not in {f.value for f in sort_fields}:
        raise ValidationError(
            f"Unknown sort field: {options.sort.field}",
            ListValidationErrorCode.SORT_FIELD_INVALID,
        )

    if options.location is not None and not allow_location:
        raise ValidationError(
            "Location search is not supported here", ListValidationErrorCode.LIST_OPTIONS_INVALID
        )

    if options.include_hidden and not allow_hidden:
        raise ValidationError(
            "include_hidden is not supported here", ListValidationErrorCode.LIST_OPTIONS_INVALID
        )

    return options


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
