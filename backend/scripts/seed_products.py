"""
Seed script to populate the products table with sample deals for development.

Trending and featured flags are assigned here, at ingestion time, so that
ranking and filtering stay deterministic for a given catalog.
"""
import random
import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add parent directory to path to import deals modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from deals.core.catalog import CATEGORIES
from deals.core.database import get_supabase_client
from deals.services.catalog.normalize import normalize_product_record, product_to_record
from deals.services.pricing import calculate_discount_percentage

PRODUCT_NAMES = {
    "electronics": [
        "Wireless Bluetooth Headphones",
        "Smart Watch Pro",
        "Mechanical Keyboard",
        "4K Monitor",
        "Portable Power Bank",
        "Gaming Laptop",
    ],
    "home-garden": [
        "Coffee Maker",
        "Air Fryer",
        "Robot Vacuum",
        "Garden Hose Reel",
        "Table Lamp",
    ],
    "fashion": [
        "Denim Jeans",
        "Running Shoes",
        "Leather Jacket",
        "Winter Coat",
        "Baseball Cap",
    ],
    "health-beauty": [
        "Face Moisturizer",
        "Electric Toothbrush",
        "Hair Dryer",
        "Sunscreen Lotion",
    ],
    "sports-outdoors": [
        "Yoga Mat",
        "Dumbbell Set",
        "Camping Tent",
        "Tennis Racket",
    ],
    "books-media": [
        "Science Fiction Novel",
        "Cookbook",
        "Vinyl Record Box Set",
        "Noise Cancelling Audio Guide",
    ],
    "toys-games": [
        "Building Blocks Set",
        "Board Game",
        "Remote Control Car",
        "Puzzle Set",
    ],
    "automotive": [
        "Car Phone Mount",
        "Dash Cam",
        "Jump Starter",
        "Tire Pressure Gauge",
    ],
}

STORES = ["Amazon", "Best Buy", "Walmart", "Target", "Newegg"]

TRENDING_PROBABILITY = 0.3
FEATURED_PROBABILITY = 0.1


def generate_product(category: str) -> dict:
    """One raw upstream-shaped deal record."""
    name = random.choice(PRODUCT_NAMES[category])
    original_price = round(random.uniform(8.0, 600.0), 2)
    price = round(original_price * random.uniform(0.4, 1.0), 2)
    created_at = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 180))

    return {
        "id": f"prod_{uuid.uuid4().hex[:12]}",
        "title": name,
        "description": f"{name} at a limited-time price.",
        "category": category,
        "store": random.choice(STORES),
        "price": price,
        "originalPrice": original_price,
        "discount": calculate_discount_percentage(original_price, price),
        "rating": round(random.uniform(1.0, 5.0), 1),
        "reviewCount": random.randint(0, 25000),
        "featureBullets": [f"{category.replace('-', ' ').title()} essential"],
        "isTrending": random.random() < TRENDING_PROBABILITY,
        "isFeatured": random.random() < FEATURED_PROBABILITY,
        "createdAt": created_at.isoformat(),
        "updatedAt": created_at.isoformat(),
    }


def generate_products(num_products: int = 50) -> list:
    records = []
    for _ in range(num_products):
        category = random.choice(CATEGORIES).id
        product = normalize_product_record(generate_product(category))
        records.append(product_to_record(product))
    return records


def main():
    print("Starting product seeding...")
    print("-" * 50)

    client = get_supabase_client()
    if not client:
        print("[ERROR] Failed to connect to Supabase. Check your .env file.")
        sys.exit(1)

    records = generate_products()

    batch_size = 25
    inserted = 0
    for i in range(0, len(records), batch_size):
        batch = records[i:i + batch_size]
        try:
            client.table("products").insert(batch).execute()
            inserted += len(batch)
        except Exception as e:
            print(f"[ERROR] Error inserting products batch: {e}")

    trending = sum(1 for r in records if r.get("is_trending"))
    print("-" * 50)
    print(f"[OK] Inserted {inserted} products ({trending} trending)")


if __name__ == "__main__":
    main()
