from __future__ import annotations
import logging
import os
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .logger import get_logger
from .models import Intent, Product

logger = get_logger("tools")

# Attribute token -> keywords looked for in the product text. A token missing from its
# table is used verbatim as its only keyword.
PURPOSE_KEYWORDS: Dict[str, List[str]] = {
    "casual": ["casual", "everyday", "classic", "canvas", "slip-on"],
    "sport": ["sport", "training", "trainer", "running", "runner", "athletic", "gym"],
    "formal": ["formal", "oxford", "derby", "loafer", "dress", "business"],
    "comfort": ["comfort", "walking", "cushion", "soft", "memory foam"],
}

AGE_GROUP_KEYWORDS: Dict[str, List[str]] = {
    "kids": ["kids", "kid", "junior", "youth", "children", "child"],
    "adult": ["adult", "men", "women", "unisex"],
    "men": ["men", "male"],
    "women": ["women", "ladies", "female"],
}

STYLE_KEYWORDS: Dict[str, List[str]] = {
    "comfortable": ["comfort", "cushion", "soft", "memory foam"],
    "lightweight": ["lightweight", "light", "air", "flex"],
    "professional": ["professional", "oxford", "derby", "leather", "formal"],
}

_TEXT_COLUMNS = ["name", "category", "description"]


def resolve_keywords(token: Optional[str], table: Dict[str, List[str]]) -> List[str]:
    if token is None:
        return []
    t = token.strip().lower()
    if not t:
        return []
    return table.get(t, [t])


def _contains_any(columns: Sequence[pd.Series], keywords: Sequence[str]) -> pd.Series:
    mask = pd.Series(False, index=columns[0].index)
    for kw in keywords:
        for col in columns:
            mask |= col.str.contains(kw, regex=False, na=False)
    return mask


def apply_filters(df: pd.DataFrame, intent: Intent) -> pd.DataFrame:
    # Every check defaults to match when its intent field is absent, the result keeps catalog order
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)

    names = df["name"].astype(str).str.lower()
    categories = df["category"].astype(str).str.lower()

    if intent.category is not None:
        mask &= categories == intent.category.strip().lower()

    price = intent.price_range
    if price.min is not None:
        mask &= df["price"] >= float(price.min)
    if price.max is not None:
        mask &= df["price"] <= float(price.max)

    purpose = resolve_keywords(intent.filters.purpose, PURPOSE_KEYWORDS)
    if purpose:
        mask &= _contains_any([names, categories], purpose)
    age_group = resolve_keywords(intent.filters.age_group, AGE_GROUP_KEYWORDS)
    if age_group:
        mask &= _contains_any([names], age_group)
    style = resolve_keywords(intent.filters.style, STYLE_KEYWORDS)
    if style:
        mask &= _contains_any([names], style)

    if logger.isEnabledFor(logging.DEBUG):
        for i in df.index:
            logger.debug(
                f"Checking: {df.at[i, 'name']} (${df.at[i, 'price']}) | category={df.at[i, 'category']} | match={bool(mask.at[i])}"
            )
    return df[mask]


def _normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    if "id" not in df.columns:
        df["id"] = [str(i) for i in range(1, len(df) + 1)]
    for col in _TEXT_COLUMNS:
        if col not in df.columns:
            df[col] = ""
        df[col] = df[col].fillna("").astype(str)
    df["id"] = df["id"].astype(str)
    if "price" not in df.columns:
        df["price"] = 0.0
    df["price"] = pd.to_numeric(df["price"], errors="coerce").fillna(0.0).astype(float)
    return df[["id", "name", "category", "price", "description"]].reset_index(drop=True)


class Catalog:
    """Static product list, loaded once and never written"""

    def __init__(self, df: pd.DataFrame):
        self.df = _normalize_frame(df)
        self.products: List[Product] = self.to_products(self.df)
        self._by_id = {p.id: p for p in self.products}

    @classmethod
    def from_path(cls, path: str) -> "Catalog":
        if not os.path.isfile(path):
            raise FileNotFoundError(path)
        if path.lower().endswith(".csv"):
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        else:
            df = pd.read_json(path, orient="records", dtype=False, precise_float=True)
        catalog = cls(df)
        logger.info(f"Loaded {len(catalog)} products from {path}")
        return catalog

    @classmethod
    def from_products(cls, products: Sequence[Product]) -> "Catalog":
        return cls(pd.DataFrame([p.model_dump() for p in products], columns=["id", "name", "category", "price", "description"]))

    def __len__(self) -> int:
        return len(self.products)

    @staticmethod
    def to_products(df: pd.DataFrame) -> List[Product]:
        return [Product(**row) for row in df.to_dict(orient="records")]

    def get(self, pid: str) -> Optional[Product]:
        return self._by_id.get(str(pid))

    def categories(self) -> List[str]:
        return sorted({c for c in self.df["category"].str.lower().tolist() if c})

    def filter(self, intent: Intent) -> List[Product]:
        out = apply_filters(self.df, intent)
        return [self.products[i] for i in out.index]


def filter_products(catalog: Sequence[Product], intent: Intent) -> List[Product]:
    """Order preserving subsequence of catalog matching the intent"""
    products = list(catalog)
    if not products:
        return []
    df = Catalog.from_products(products).df
    return [products[i] for i in apply_filters(df, intent).index]
