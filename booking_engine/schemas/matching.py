# booking_engine/schemas/matching.py
"""Resource matcher results."""

from typing import List, Optional

from pydantic import Field

from ._strict_base import StrictModel


class RankedResource(StrictModel):
    resource_id: str
    name: str
    score: float
    is_preferred: bool = False
    rating: Optional[float] = None
    experience_years: Optional[int] = None
    commission_rate: Optional[float] = None


class MatchResult(StrictModel):
    ranked: List[RankedResource] = Field(default_factory=list)
    # A preferred resource was requested but failed filtering/availability
    preferred_resource_unavailable: bool = False

    @property
    def resource_ids(self) -> List[str]:
        return [entry.resource_id for entry in self.ranked]

    @property
    def best(self) -> Optional[RankedResource]:
        return self.ranked[0] if self.ranked else None
