import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from product_service.config import Settings
from product_service.errors import StoreError
from product_service.store import CatalogStore, make_stock

ROOT = Path(__file__).resolve().parents[1]

PRODUCTS = [
    {
        "id": "19befc55-ea39-4ff0-8b63-e3a3c8b94f53",
        "title": "Classic White T-Shirt",
        "description": "100% cotton, unisex, available in all sizes",
        "price": 1499,
        "image": "https://images.unsplash.com/photo-1574180566232-aaad1b5b8450",
        "count": 50,
    },
    {
        "id": "889b35f2-4c60-4265-9ea7-b81ebbbdee39",
        "title": "Blue Denim Jeans",
        "description": "Slim fit, stretchable, various waist sizes",
        "price": 3999,
        "image": "https://images.unsplash.com/photo-1715758890151-2c15d5d482aa",
        "count": 30,
    },
    {
        "id": "f4850e7b-fc3d-40f3-a532-64919cec3e0b",
        "title": "Red Hoodie",
        "description": "Soft fleece, kangaroo pocket, drawstring hood",
        "price": 2999,
        "image": "https://images.unsplash.com/photo-1579269896398-4deb6cbdc320",
        "count": 25,
    },
    {
        "id": "c7630b15-10e5-4244-a003-8dcc2342d0c0",
        "title": "Black Leather Jacket",
        "description": "Genuine leather, biker style, limited edition",
        "price": 8999,
        "image": "https://images.unsplash.com/photo-1727524366429-27de8607d5f6",
        "count": 10,
    },
    {
        "id": "1169cf53-f439-4130-98d3-395ee35c6dcd",
        "title": "Green Chino Shorts",
        "description": "Lightweight, breathable, perfect for summer",
        "price": 2499,
        "image": "https://images.unsplash.com/photo-1667388624717-895854eea032",
        "count": 40,
    },
]


def populate(store: CatalogStore) -> int:
    written = 0
    for p in PRODUCTS:
        product = {k: v for k, v in p.items() if k != "count"}
        try:
            store.put_product(product)
            store.put_stock(make_stock(p["id"], p["count"]))
        except StoreError as e:
            print(f"Error adding {p['title']}: {e}")
            continue
        print(f"Added product: {p['title']} (stock {p['count']})")
        written += 1
    return written


def main():
    load_dotenv(ROOT / ".env")
    os.environ.setdefault("AWS_REGION", "us-east-1")

    store = CatalogStore.from_settings(Settings.from_env())
    written = populate(store)
    print(f"\n=== {written}/{len(PRODUCTS)} products written ===")
    if written != len(PRODUCTS):
        sys.exit(1)


if __name__ == "__main__":
    main()
