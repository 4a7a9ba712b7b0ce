"""
Closed catalog of storefront categories and premium ranking keywords.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    description: str


CATEGORIES: Tuple[Category, ...] = (
    Category("electronics", "Electronics", "Latest gadgets and tech deals"),
    Category("home-garden", "Home & Garden", "Everything for your home"),
    Category("fashion", "Fashion", "Clothing and accessories"),
    Category("health-beauty", "Health & Beauty", "Personal care products"),
    Category("sports-outdoors", "Sports & Outdoors", "Fitness and outdoor gear"),
    Category("books-media", "Books & Media", "Books, movies, and music"),
    Category("toys-games", "Toys & Games", "Fun for all ages"),
    Category("automotive", "Automotive", "Car parts and accessories"),
)

CATEGORIES_BY_ID: Dict[str, Category] = {c.id: c for c in CATEGORIES}

# Sentinel accepted from callers to mean "no category filter"
ALL_CATEGORIES = "all"

# Category labels containing any of these get the ranking boost
PREMIUM_CATEGORY_KEYWORDS: FrozenSet[str] = frozenset({
    "electronic",
    "tech",
    "computer",
    "phone",
    "laptop",
    "tablet",
    "gaming",
    "audio",
    "camera",
})


def normalize_category(value: Optional[str]) -> Optional[str]:
    """
    Map a caller-supplied category to a catalog id.

    Returns None for blank input, "all", or anything outside the catalog.
    """
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    if not candidate or candidate == ALL_CATEGORIES:
        return None
    return candidate if candidate in CATEGORIES_BY_ID else None
