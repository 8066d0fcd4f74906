from __future__ import annotations
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

# Bump when the wire shape of Intent changes
INTENT_SCHEMA_VERSION = 2

# These are the data structures that hold everything together
class Product(BaseModel):
    # One record of the static catalog, never mutated after load
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    price: float
    description: str = ""

class PriceRange(BaseModel):
    # None means unbounded on that side, 0 is a real bound
    model_config = ConfigDict(extra="forbid")

    min: Optional[float] = Field(default=None, ge=0)
    max: Optional[float] = Field(default=None, ge=0)

    def is_empty(self) -> bool:
        return self.min is None and self.max is None

class IntentFilters(BaseModel):
    # Free-form tokens resolved against the keyword tables in tools.py
    model_config = ConfigDict(extra="forbid")

    purpose: Optional[str] = None
    age_group: Optional[str] = None
    style: Optional[str] = None

class SemanticMatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product: Product
    similarity_score: float = Field(alias="similarityScore")

class Intent(BaseModel):
    # What the user is looking for
    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(default=INTENT_SCHEMA_VERSION, alias="schemaVersion")
    category: Optional[str] = None
    price_range: PriceRange = Field(default_factory=PriceRange, alias="priceRange")
    filters: IntentFilters = Field(default_factory=IntentFilters)
    # Informational side list, never used to include or exclude products
    semantic_matches: Optional[List[SemanticMatch]] = Field(default=None, alias="semanticMatches")

    @classmethod
    def degraded(cls) -> "Intent":
        """Intent with every field absent, matches the whole catalog"""
        return cls()

    def is_unconstrained(self) -> bool:
        return (
            self.category is None
            and self.price_range.is_empty()
            and self.filters.purpose is None
            and self.filters.age_group is None
            and self.filters.style is None
        )

class ChatRequest(BaseModel):
    # What comes from the frontend when the user sends a message
    message: Optional[str] = None

class ChatDebug(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_message: str = Field(alias="originalMessage")
    extracted_intent: Intent = Field(alias="extractedIntent")
    total_products: int = Field(alias="totalProducts")
    filtered_count: int = Field(alias="filteredCount")

class ChatResponse(BaseModel):
    # What we send back to the frontend
    products: List[Product]
    intent: Intent
    debug: ChatDebug

