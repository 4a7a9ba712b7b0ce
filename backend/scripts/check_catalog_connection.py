"""
Verify that the catalog can reach Supabase and read the products table.

Runs one catalog query through SupabaseProductRepository and reports how many
rows came back and how many survived normalization.
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import deals modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from deals.core.config import get_settings
from deals.core.database import get_supabase_client
from deals.services.catalog import RepositoryError, SupabaseProductRepository
from deals.services.ranking import rank_products


async def check_connection() -> bool:
    print("=" * 60)
    print("Checking catalog connection")
    print("=" * 60)

    settings = get_settings()
    if not settings.supabase_url:
        print("[X] SUPABASE_URL not set")
        return False
    if not settings.supabase_key:
        print("[X] SUPABASE_SERVICE_KEY not set")
        return False

    key = settings.supabase_key
    key_preview = f"{key[:8]}...{key[-8:]}" if len(key) > 16 else "***"
    print(f"[OK] SUPABASE_URL: {settings.supabase_url}")
    print(f"[OK] SUPABASE_SERVICE_KEY: {key_preview}")

    client = get_supabase_client()
    if client is None:
        print("[X] Failed to create Supabase client")
        return False

    repository = SupabaseProductRepository(client)
    try:
        products, total = await repository.query_products(limit=50)
    except RepositoryError as e:
        print(f"[X] Catalog query failed: {e}")
        print("   Check that the products table exists and the key can read it")
        return False

    print(f"[OK] products table reachable: {total} row(s) in total")
    print(f"   {len(products)} product(s) in the first batch passed normalization")

    ranked = rank_products(products)[:5]
    if ranked:
        print("   Top of the first batch:")
        for item in ranked:
            print(f"   - {item.score:.3f}  {item.product.title[:60]}")
    return True


if __name__ == "__main__":
    success = asyncio.run(check_connection())
    sys.exit(0 if success else 1)
