"""Shopping intent extraction

The chat model turns a free text message into a JSON intent. The reply is treated as
untrusted input and checked against a strict schema. Any failure on the way degrades to an
intent with every field absent so the filter falls through to the whole catalog.
"""

from __future__ import annotations
import json
import math
import re
from typing import Any, Dict, List, Optional, Sequence

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import EmbeddingFormatError, UpstreamCallError, UpstreamParseError
from .llm import OpenRouterClient
from .logger import get_logger
from .models import Intent, IntentFilters, PriceRange, Product
from .similarity import SemanticMatcher

logger = get_logger("intent")

SYSTEM_INSTRUCTION = (
    "You are a product filter assistant. When no specific purpose is mentioned, do not set any "
    "purpose filter to show all matching products. Only set purpose, age_group or style when "
    "explicitly mentioned (e.g., 'sport shoes', 'formal shoes', 'casual shoes'). Never infer them."
)

PROMPT_TEMPLATE = """Analyze this shopping request: "{message}" and extract detailed product preferences.

Rules for extraction:
1. Main Category:
   - sneakers: running shoes, sport shoes, athletic footwear
   - formal: dress shoes, business shoes, oxford, loafers
   - sandals: flip-flops, slides, beach footwear

2. Price Analysis:
   - For "between X and Y": set priceRange.min to X and priceRange.max to Y
   - For "under/below X": set priceRange.min to 0 and priceRange.max to X
   - For "above/over X": set priceRange.min to X and priceRange.max to null
   - Parse number ranges like "60-75" as priceRange.min and priceRange.max
   - If no price is mentioned leave both bounds null

3. Purpose Detection:
   - casual: everyday wear, regular use, casual style, basic shoes
   - sport: athletic, training, running, gym, sports activities
   - formal: business, dress, professional, office wear
   - comfort: focus on comfort, walking, daily use

4. Additional Attributes:
   - age_group: kids, adult, men, women
   - style: comfortable, lightweight, professional

Respond with a JSON object exactly in this format:
{{
  "category": "sneakers",
  "priceRange": {{"min": 60, "max": 75}},
  "filters": {{"purpose": null, "age_group": null, "style": null}}
}}

Set a filter only if it is explicitly mentioned in the request, otherwise use null.
Only respond with the JSON, no other text."""

# Canonical category -> phrasings the model may hand back instead
CATEGORY_ALIASES = {
    "sneakers": ["sneakers", "sneaker", "running shoes", "sports shoes", "sport shoes", "athletic footwear", "trainers"],
    "sandals": ["sandals", "sandal", "slippers", "flip-flops", "flip flops", "slides", "beach footwear"],
    "formal": ["formal", "formal shoes", "dress shoes", "business shoes", "oxford", "oxfords", "loafers"],
}

_ABSENT_TOKENS = {"", "null", "none", "any", "n/a"}
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and v.strip().lower() in _ABSENT_TOKENS:
        return None
    return v


def _coerce_price(v: Any) -> Optional[float]:
    v = _blank_to_none(v)
    if v is None:
        return None
    if isinstance(v, bool):
        raise ValueError("price must be a number")
    try:
        if isinstance(v, (int, float)):
            price = float(v)
        elif isinstance(v, str):
            price = float(v.strip().replace("$", "").replace(",", ""))
        else:
            raise ValueError("price must be a number")
    except OverflowError:
        raise ValueError("price is out of range")
    # inf would serialize as null and read as "no bound" while excluding everything
    if not math.isfinite(price):
        raise ValueError("price must be finite")
    return price


def normalize_category(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    c = value.strip().lower()
    if not c:
        return None
    for canonical, aliases in CATEGORY_ALIASES.items():
        if c in aliases:
            return canonical
    return c


class PriceRangeReply(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    max: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)

    @field_validator("min", "max", mode="before")
    @classmethod
    def coerce_price(cls, v):
        return _coerce_price(v)

    @model_validator(mode="after")
    def ordered_bounds(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            self.min, self.max = self.max, self.min
        return self


class FiltersReply(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    purpose: Optional[str] = None
    age_group: Optional[str] = None
    style: Optional[str] = None

    @field_validator("purpose", "age_group", "style", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)


class IntentReply(BaseModel):
    """Shape the chat model must answer with"""
    model_config = ConfigDict(extra="forbid")

    category: Optional[str] = None
    priceRange: Optional[PriceRangeReply] = None
    filters: Optional[FiltersReply] = None

    @field_validator("category", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    def to_intent(self) -> Intent:
        price = self.priceRange or PriceRangeReply()
        filters = self.filters or FiltersReply()
        return Intent(
            category=normalize_category(self.category),
            price_range=PriceRange(min=price.min, max=price.max),
            filters=IntentFilters(
                purpose=filters.purpose.lower() if filters.purpose else None,
                age_group=filters.age_group.lower() if filters.age_group else None,
                style=filters.style.lower() if filters.style else None,
            ),
        )


def build_intent_prompt(message: str) -> str:
    # Quotes in the message would end the quoted request early
    return PROMPT_TEMPLATE.format(message=message.replace('"', "'"))


def build_messages(message: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": build_intent_prompt(message)},
    ]


def parse_intent_reply(content: str) -> Intent:
    """Validate the raw model reply and turn it into an Intent

    Raises UpstreamParseError when the reply is not JSON or does not have the intent shape.
    """
    text = _FENCE.sub("", (content or "").strip()).strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise UpstreamParseError(f"Reply is not valid JSON: {e.msg}", raw=content) from e
    if not isinstance(payload, dict):
        raise UpstreamParseError("Reply is not a JSON object", raw=content)
    try:
        reply = IntentReply.model_validate(payload)
    except pydantic.ValidationError as e:
        raise UpstreamParseError(f"Reply does not match the intent schema ({e.error_count()} errors)", raw=content) from e
    return reply.to_intent()


class IntentExtractor:
    def __init__(
        self,
        client: OpenRouterClient,
        matcher: Optional[SemanticMatcher] = None,
        catalog: Sequence[Product] = (),
        semantic_top_k: int = 5,
    ):
        self.client = client
        self.matcher = matcher
        self.catalog = list(catalog)
        self.semantic_top_k = semantic_top_k

    def _semantic_matches(self, message: str):
        try:
            return self.matcher.find_similar(message, self.catalog, top_k=self.semantic_top_k)
        except (UpstreamCallError, EmbeddingFormatError) as e:
            logger.warning(f"Semantic search failed, continuing without matches: {e}")
            return []

    def extract_intent(self, message: str) -> Intent:
        """Ask the chat model for the intent behind a message

        Never raises for remote or parse failures, those return Intent.degraded()
        """
        try:
            content = self.client.chat_completion(build_messages(message), temperature=0)
        except UpstreamCallError as e:
            logger.error(f"Intent extraction call failed: {e}")
            return Intent.degraded()
        logger.debug(f"Chat model reply: {content}")

        try:
            intent = parse_intent_reply(content)
        except UpstreamParseError as e:
            logger.error(f"Failed to parse chat model reply ({e}): {content}")
            return Intent.degraded()

        if self.matcher is not None:
            # Raw message rather than the parsed intent, the side list should reflect wording
            intent.semantic_matches = self._semantic_matches(message)
        return intent
