"""
Composite desirability score for storefront products.

final_score = clamp(
    0.4 * best_seller_score +
    0.3 * rating_score +
    0.2 * review_score +
    0.1 * price_score +
    category_boost,
    0, 1
)

Review and price sub-scores are normalized against the candidate set being
ranked, so a product's score depends on the population it is ranked in. The
category boost sits outside the weight budget: it nudges premium categories
ahead and the total is clamped afterwards.

Scoring is a pure function of the candidate set. Flags such as is_trending are
labels assigned at ingestion time and are only read here.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

from deals.core.catalog import PREMIUM_CATEGORY_KEYWORDS
from deals.core.logging import get_logger
from deals.core.metrics import record_ranking_score
from deals.models.product import Product, ProductScore, ScoreBreakdown

logger = get_logger(__name__)

WEIGHTS = {
    "best_seller_score": 0.4,
    "rating_score": 0.3,
    "review_score": 0.2,
    "price_score": 0.1,
}


def validate_weights(weights: dict) -> None:
    total = sum(weights.values())
    if not math.isclose(total, 1.0):
        raise ValueError(f"ranking weights must sum to 1.0, got {total}")


validate_weights(WEIGHTS)

FEATURED_SCORE = 1.0
TRENDING_SCORE = 0.7

MIN_PRICE = 12.0  # below this a deal is treated as low quality
HIGH_VALUE_THRESHOLD = 50.0
LOW_PRICE_PENALTY = 0.5  # multiplier below MIN_PRICE
HIGH_VALUE_BONUS = 0.3  # additive at or above HIGH_VALUE_THRESHOLD

CATEGORY_BOOST = 0.15


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class PopulationStats:
    """Normalization bounds taken from the whole candidate set."""
    max_review_count: int = 1
    min_price: float = 0.0
    max_price: float = 1.0


def compute_population_stats(products: Iterable[Product]) -> PopulationStats:
    """
    Collect normalization bounds.

    Only positive prices count; the price range is widened to include 0 and
    1 and the review maximum is floored at 1 so no sub-score ever divides by
    zero.
    """
    prices = []
    max_reviews = 1
    for product in products:
        if product.price > 0:
            prices.append(product.price)
        if product.review_count > max_reviews:
            max_reviews = product.review_count

    return PopulationStats(
        max_review_count=max_reviews,
        min_price=min(prices + [0.0]),
        max_price=max(prices + [1.0]),
    )


def best_seller_score(product: Product) -> float:
    score = 0.0
    if product.is_featured:
        score += FEATURED_SCORE
    if product.is_trending:
        score += TRENDING_SCORE
    return clamp(score)


def rating_score(product: Product) -> float:
    """Map a 1-5 star rating onto 0-1; unrated products score 0."""
    rating = product.rating or 0.0
    if rating <= 0:
        return 0.0
    return clamp((rating - 1) / 4)


def review_score(product: Product, max_review_count: int) -> float:
    """Log-scaled review count, relative to the busiest product in the set."""
    reviews = product.review_count
    max_reviews = max(max_review_count, 1)
    if reviews <= 0:
        return 0.0
    return clamp(math.log(reviews + 1) / math.log(max_reviews + 1))


def price_score(product: Product, min_price: float, max_price: float) -> float:
    """Cheaper-within-the-set scores higher, adjusted by price tier."""
    price = product.price
    if price <= 0 or max_price <= min_price:
        return 0.0

    competitiveness = max(0.0, 1 - (price - min_price) / (max_price - min_price))

    if price < MIN_PRICE:
        score = competitiveness * LOW_PRICE_PENALTY
    elif price >= HIGH_VALUE_THRESHOLD:
        score = competitiveness + HIGH_VALUE_BONUS
    else:
        score = competitiveness

    return clamp(score)


def category_boost(product: Product) -> float:
    category = (product.category or "").lower()
    if any(keyword in category for keyword in PREMIUM_CATEGORY_KEYWORDS):
        return CATEGORY_BOOST
    return 0.0


def compute_final_score(
    best_seller: float,
    rating: float,
    reviews: float,
    price: float,
    boost: float = 0.0,
) -> float:
    """Weighted sum of the sub-scores plus the boost, clamped to [0, 1]."""
    weighted = (
        WEIGHTS["best_seller_score"] * best_seller +
        WEIGHTS["rating_score"] * rating +
        WEIGHTS["review_score"] * reviews +
        WEIGHTS["price_score"] * price
    )
    return clamp(weighted + boost)


def score_product(product: Product, stats: PopulationStats) -> ProductScore:
    breakdown = ScoreBreakdown(
        best_seller_score=best_seller_score(product),
        rating_score=rating_score(product),
        review_score=review_score(product, stats.max_review_count),
        price_score=price_score(product, stats.min_price, stats.max_price),
        category_boost=category_boost(product),
    )
    score = compute_final_score(
        best_seller=breakdown.best_seller_score,
        rating=breakdown.rating_score,
        reviews=breakdown.review_score,
        price=breakdown.price_score,
        boost=breakdown.category_boost,
    )
    return ProductScore(product=product, score=score, breakdown=breakdown)


def rank_products(products: Sequence[Product]) -> List[ProductScore]:
    """
    Score every product against the full set and sort by score, best first.

    Equal scores keep their input order.

    Returns:
        List of ProductScore, sorted by score descending
    """
    if not products:
        logger.debug("ranking_skipped_empty")
        return []

    stats = compute_population_stats(products)
    logger.debug(
        "ranking_started",
        candidates_count=len(products),
        weights=WEIGHTS,
        max_review_count=stats.max_review_count,
        min_price=stats.min_price,
        max_price=stats.max_price,
    )

    scored = [score_product(product, stats) for product in products]
    scored.sort(key=lambda item: item.score, reverse=True)

    for item in scored:
        record_ranking_score(item.score)

    logger.debug("ranking_completed", ranked_count=len(scored))
    return scored


def debug_product_ranking(products: Sequence[Product], top_n: int = 10) -> List[Dict[str, object]]:
    """
    Log and return the score breakdown of the top_n products.

    Handy when tuning weights: each row carries the composite score, the
    sub-scores and the price tier the product fell into.
    """
    rows = []
    for position, item in enumerate(rank_products(products)[:top_n], start=1):
        product = item.product
        if product.price < MIN_PRICE:
            price_tier = "low"
        elif product.price >= HIGH_VALUE_THRESHOLD:
            price_tier = "high"
        else:
            price_tier = "standard"

        row = {
            "position": position,
            "product_id": product.id,
            "title": product.title[:35],
            "score": round(item.score, 3),
            "price": product.price,
            "price_tier": price_tier,
            "premium_category": item.breakdown.category_boost > 0,
            **{name: round(value, 2) for name, value in item.breakdown.model_dump().items()},
        }
        logger.info("ranking_debug_row", **row)
        rows.append(row)
    return rows
