"""Event record shape, used only when VALIDATE_EVENTS is switched on."""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

VIBE_TAGS = (
    "rock_gig",
    "indie_live",
    "post_punk",
    "blues_night",
    "electro_rock",
    "lcd_adjacent",
    "indie_sleaze",
    "art_led",
    "design_literate",
    "divey_good",
    "cinematic",
    "paris_only",
    "wine_bar",
    "exhibition",
)


class EventSource(BaseModel):
    name: str
    url: str


class EventRecord(BaseModel):
    """One event as the model is asked to return it."""

    model_config = ConfigDict(extra="allow")

    title: str
    venue_name: str
    date: datetime = Field(description="ISO 8601 datetime")
    end_time: Optional[datetime] = None
    price: Optional[float] = Field(default=None, ge=0, description="0 for free, null if unknown")
    description: str = ""
    editorial: str = ""
    vibe_tags: List[str] = Field(default_factory=list)
    sources: List[EventSource] = Field(default_factory=list)
    recurring: bool = False
    editorial_pick: bool = False
    trusted_platform: bool = False
    solo: bool = False
    coffee_tip: Optional[str] = None
    late_night_tip: Optional[str] = None

    @field_validator("vibe_tags")
    @classmethod
    def check_vibe_tags(cls, tags):
        unknown = [t for t in tags if t not in VIBE_TAGS]
        if unknown:
            raise ValueError(f"unknown vibe_tags: {unknown}")
        return tags


def validate_events(events: list) -> list:
    """
    Keep only the records that match EventRecord.

    The records are returned as the model produced them; the pydantic model is
    only used as a check, nothing is coerced.
    """
    kept = []
    for index, item in enumerate(events):
        if not isinstance(item, dict):
            logger.warning(f"dropping event #{index}: not an object")
            continue
        try:
            EventRecord.model_validate(item)
        except ValidationError as e:
            logger.warning(f"dropping event #{index} ({item.get('title')!r}): {e.error_count()} validation errors")
            continue
        kept.append(item)
    return kept
