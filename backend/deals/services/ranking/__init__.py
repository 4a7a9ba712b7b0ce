"""Deterministic product scoring and ordering."""

from .score import rank_products, debug_product_ranking
from .sort import sort_products, get_top_ranked_products

__all__ = ["rank_products", "debug_product_ranking", "sort_products", "get_top_ranked_products"]
