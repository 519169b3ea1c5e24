"""Guidepost - Guide Schema & Validator.

A Guide is the immutable JSON artifact produced by one transform. Every
Guide crossing a trust boundary (provider output, a blob fetched back
from storage) goes through ``validate_guide`` before anything uses it.
"""

import json
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
)
from pydantic.alias_generators import to_camel


GUIDE_SCHEMA_VERSION = "1.0"

_URL_ADAPTER = TypeAdapter(AnyUrl)


def _check_url(value: str) -> str:
    """Require an absolute URL but keep the caller's exact string."""
    _URL_ADAPTER.validate_python(value)
    return value


def _whole_number(value: Any) -> Any:
    """Integers, or floats with no fractional part (1.0); never bools or strings."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Input should be a valid integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("Input should be a valid integer")
        return int(value)
    return value


NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
UrlStr = Annotated[str, AfterValidator(_check_url)]

# Exactly these three; "High", "extreme" and friends are rejected
SensoryLevel = Literal["low", "medium", "high"]

# The classifier may invent domain-appropriate categories
SensoryCategory = NonEmptyStr


class GuideModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS - Guide v1
# ─────────────────────────────────────────────


class SensoryDetail(GuideModel):
    """One sensory observation within an area."""

    category: SensoryCategory
    level: SensoryLevel
    description: NonEmptyStr
    image_url: Optional[UrlStr] = None


class Area(GuideModel):
    """A zone on the visitor's journey through the venue."""

    id: NonEmptyStr
    name: NonEmptyStr
    order: Annotated[int, BeforeValidator(_whole_number), Field(ge=0)]
    summary: Optional[str] = None
    badges: List[SensoryCategory] = []
    details: List[SensoryDetail] = []
    images: List[UrlStr] = []
    embed_urls: List[UrlStr] = []


class Facility(GuideModel):
    description: NonEmptyStr
    map_url: Optional[UrlStr] = None


class QuietZone(GuideModel):
    description: NonEmptyStr


class Facilities(GuideModel):
    exits: List[Facility] = []
    bathrooms: List[Facility] = []
    quiet_zones: List[QuietZone] = []


class VenueOverview(GuideModel):
    name: NonEmptyStr
    address: NonEmptyStr
    contact: Optional[str] = None
    summary: NonEmptyStr
    map_url: Optional[UrlStr] = None
    # Only when the source document states one; null means absent
    last_updated: Optional[str] = None


class Guide(GuideModel):
    """Complete guide - the main output of a transform."""

    schema_version: str = GUIDE_SCHEMA_VERSION
    venue: VenueOverview
    categories: List[SensoryCategory] = []
    areas: Annotated[List[Area], Field(min_length=1)]
    facilities: Facilities = Field(default_factory=Facilities)
    suggestions: List[str] = []
    # Producers return full timestamps, bare dates or free text; presence only
    generated_at: NonEmptyStr


# ─────────────────────────────────────────────
# VALIDATION RESULT
# ─────────────────────────────────────────────


class GuideValid(BaseModel):
    valid: Literal[True] = True
    guide: Guide


class GuideInvalid(BaseModel):
    valid: Literal[False] = False
    errors: List[str]


GuideValidation = Union[GuideValid, GuideInvalid]


def _format_error(error: dict) -> str:
    path = ".".join(str(part) for part in error.get("loc", ())) or "(root)"
    return f"{path}: {error.get('msg', 'Invalid value')}"


def validate_guide(data: Any) -> GuideValidation:
    """Validate untrusted decoded JSON. Never raises."""
    try:
        guide = Guide.model_validate(data)
    except ValidationError as e:
        return GuideInvalid(errors=[_format_error(err) for err in e.errors()])
    return GuideValid(guide=guide)


def parse_guide_bytes(raw: Union[bytes, str]) -> GuideValidation:
    """Decode JSON then validate; undecodable input is a root error."""
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as e:
        return GuideInvalid(errors=[f"(root): Invalid JSON: {e}"])
    return validate_guide(data)


def guide_to_json(guide: Guide) -> str:
    """Serialize a guide the way it is stored: camelCase, absent optionals omitted."""
    return guide.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def guide_to_dict(guide: Guide) -> dict:
    return guide.model_dump(mode="json", by_alias=True, exclude_none=True)


# ─────────────────────────────────────────────
# PROMPT SHAPE - handed to transform providers
# ─────────────────────────────────────────────

GUIDE_JSON_SHAPE = """{
  "schemaVersion": "1.0",
  "venue": {
    "name": "string (venue name)",
    "address": "string (full address)",
    "contact": "string (optional - phone or email)",
    "summary": "string (1-2 sentence overview)",
    "lastUpdated": "string (optional - ISO date if document has explicit update date)"
  },
  "categories": ["string (sensory categories present in this venue, e.g. Sound, Light, Crowds, Smell, Touch, Movement, Temperature)"],
  "areas": [
    {
      "id": "string (unique identifier, e.g. 'entry', 'main-hall')",
      "name": "string (human-readable area name)",
      "order": "number (0-based, journey order)",
      "summary": "string (one short sentence, max 15 words, key sensory highlight)",
      "badges": ["string (categories with warnings in this area)"],
      "details": [
        {
          "category": "string (sensory category)",
          "level": "low | medium | high",
          "description": "string (specific sensory information)"
        }
      ]
    }
  ],
  "facilities": {
    "exits": [{ "description": "string", "mapUrl": "string (optional URL)" }],
    "bathrooms": [{ "description": "string", "mapUrl": "string (optional URL)" }],
    "quietZones": [{ "description": "string" }]
  },
  "suggestions": ["string (content improvement suggestion)"],
  "generatedAt": "string (ISO date, e.g. 2026-01-29T10:30:00Z)"
}"""
