"""
AHSO Store - Database Seeder
==============================
Seeds demo data for local development.

Usage:
    python scripts/seed.py          # Seed (idempotent)
    python scripts/seed.py --reset  # Drop all tables and reseed

Seeded:
  1. Accounts (admin, staff, customer)
  2. Brands
  3. Categories
  4. Products + variants
"""

import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from common.security import hash_password
from modules.user.models import User, UserRole
from modules.catalog.models import Brand, Category, Product, ProductVariant, PublishStatus
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.order.models import Order, OrderItem  # noqa: F401

DEFAULT_PASSWORD = os.getenv("SEED_PASSWORD", "Ahso@2024")

ACCOUNTS = [
    {"username": "admin", "email": "admin@ahso.vn", "phone_e164": "+84901000001",
     "full_name": "AHSO Admin", "role": UserRole.ADMIN},
    {"username": "staff", "email": "staff@ahso.vn", "phone_e164": "+84901000002",
     "full_name": "AHSO Sales", "role": UserRole.STAFF},
    {"username": "khachhang", "email": "khachhang@example.com", "phone_e164": "+84901000003",
     "full_name": "Nguyễn Văn An", "role": UserRole.USER},
]

BRANDS = [
    {"name": "Siemens", "slug": "siemens", "summary": "PLC, HMI and drives"},
    {"name": "Omron", "slug": "omron", "summary": "Sensors, relays and controllers"},
    {"name": "Schneider Electric", "slug": "schneider-electric", "summary": "Power distribution and inverters"},
    {"name": "Mitsubishi Electric", "slug": "mitsubishi-electric", "summary": "Servo systems and PLC"},
]

CATEGORIES = [
    {"name": "PLC", "slug": "plc", "sort_order": 1},
    {"name": "Cảm biến", "slug": "cam-bien", "sort_order": 2},
    {"name": "Biến tần", "slug": "bien-tan", "sort_order": 3},
    {"name": "Động cơ servo", "slug": "dong-co-servo", "sort_order": 4},
    {"name": "Thiết bị đóng cắt", "slug": "thiet-bi-dong-cat", "sort_order": 5},
]

# (name, brand slug, category slug, summary, [(sku, variant name, price, stock)])
PRODUCTS = [
    ("PLC Siemens S7-1200 CPU 1214C", "siemens", "plc", "Compact CPU, 14 DI / 10 DO",
     [("6ES7214-1AG40-0XB0", "DC/DC/DC", 8_950_000, 12),
      ("6ES7214-1BG40-0XB0", "AC/DC/RLY", 8_450_000, 6)]),
    ("HMI Siemens KTP700 Basic", "siemens", "plc", "7 inch touch panel",
     [("6AV2123-2GB03-0AX0", None, 11_200_000, 4)]),
    ("Cảm biến tiệm cận Omron E2E-X5ME1", "omron", "cam-bien", "Inductive, M18, NPN",
     [("E2E-X5ME1", "2M cable", 650_000, 80)]),
    ("Cảm biến quang Omron E3Z-D61", "omron", "cam-bien", "Diffuse reflective, 100 mm",
     [("E3Z-D61", None, 1_150_000, 35)]),
    ("Relay trung gian Omron MY2N", "omron", "thiet-bi-dong-cat", "DPDT, 24VDC coil",
     [("MY2N-24VDC", "24VDC", 95_000, 300),
      ("MY2N-220VAC", "220VAC", 98_000, 150)]),
    ("Biến tần Schneider ATV320 2.2kW", "schneider-electric", "bien-tan", "3-phase 380V",
     [("ATV320U22N4B", None, 9_800_000, 5)]),
    ("Contactor Schneider LC1D18", "schneider-electric", "thiet-bi-dong-cat", "18A, 220VAC coil",
     [("LC1D18M7", None, 720_000, 60)]),
    ("MCB Schneider iC60N 2P 32A", "schneider-electric", "thiet-bi-dong-cat", "Miniature circuit breaker",
     [("A9F74232", None, 410_000, 0)]),
    ("Động cơ servo Mitsubishi HG-KR43", "mitsubishi-electric", "dong-co-servo", "400W, 3000 rpm",
     [("HG-KR43", None, 7_650_000, 3)]),
]


def ensure_tables():
    """Create all tables if they don't exist (safe to call multiple times)."""
    print("[0/4] Ensuring all tables exist...")
    Base.metadata.create_all(bind=engine)
    print("  + All tables OK\n")


def seed():
    db = SessionLocal()
    try:
        print("=" * 50)
        print("  AHSO Store - Seeder")
        print("=" * 50)

        ensure_tables()

        # ==========================================
        # 1. Accounts
        # ==========================================
        print("[1/4] Accounts")
        for data in ACCOUNTS:
            existing = db.query(User).filter(User.username == data["username"]).first()
            if existing:
                print(f"  = {data['username']} exists")
                continue
            db.add(User(
                username=data["username"],
                email=data["email"],
                phone_e164=data["phone_e164"],
                full_name=data["full_name"],
                password_hash=hash_password(DEFAULT_PASSWORD),
                role=data["role"].value,
                shipping_line1="123 Nguyễn Văn Linh",
                shipping_city="Hồ Chí Minh",
                shipping_country="VN",
            ))
            print(f"  + {data['role'].value}: {data['username']}")
        db.flush()

        # ==========================================
        # 2. Brands
        # ==========================================
        print("\n[2/4] Brands")
        brands = {}
        for data in BRANDS:
            brand = db.query(Brand).filter(Brand.slug == data["slug"]).first()
            if not brand:
                brand = Brand(**data)
                db.add(brand)
                print(f"  + {data['name']}")
            brands[data["slug"]] = brand
        db.flush()

        # ==========================================
        # 3. Categories
        # ==========================================
        print("\n[3/4] Categories")
        categories = {}
        for data in CATEGORIES:
            category = db.query(Category).filter(Category.slug == data["slug"]).first()
            if not category:
                category = Category(**data)
                db.add(category)
                print(f"  + {data['name']}")
            categories[data["slug"]] = category
        db.flush()

        # ==========================================
        # 4. Products + Variants
        # ==========================================
        print("\n[4/4] Products")
        from common.helpers import slugify
        for name, brand_slug, category_slug, summary, variants in PRODUCTS:
            slug = slugify(name)
            if db.query(Product.id).filter(Product.slug == slug).first():
                print(f"  = {slug} exists")
                continue
            product = Product(
                name=name,
                slug=slug,
                summary=summary,
                description=f"{name}. {summary}.",
                status=PublishStatus.PUBLISHED.value,
                brand=brands[brand_slug],
                category=categories[category_slug],
            )
            for sku, variant_name, price, stock in variants:
                product.variants.append(ProductVariant(
                    sku=sku,
                    name=variant_name,
                    price=Decimal(price),
                    list_price=Decimal(price) * Decimal("1.1"),
                    stock_on_hand=stock,
                ))
            db.add(product)
            print(f"  + {name} ({len(variants)} variants)")

        db.commit()
        print("\nSeed complete.")
        print(f"Login with admin / staff / khachhang and password {DEFAULT_PASSWORD}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def reset_and_seed():
    """Drop all tables and recreate + seed."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("All tables recreated")
    seed()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
        if confirm.strip().lower() == "yes":
            reset_and_seed()
        else:
            print("Aborted.")
    else:
        seed()
