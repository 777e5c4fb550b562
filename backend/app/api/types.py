from __future__ import annotations

from typing import Annotated

from fastapi import Query

SearchText = Annotated[
    str,
    Query(
        max_length=200,
        description="Free-text search input; blank input yields empty results",
    ),
]

# taken as text so a blank `city_id=` from the front end means "no scope"
CityScope = Annotated[
    str | None,
    Query(description="Restrict establishment matches to this city id"),
]

StateUf = Annotated[
    str | None,
    Query(description="State code, e.g. TO; unknown codes yield an empty list"),
]
