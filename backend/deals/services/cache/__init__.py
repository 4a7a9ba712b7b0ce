"""Result caches built on deals.core.cache."""
