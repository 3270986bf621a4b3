"""
Catalog Module - Models
========================
Brand, Category, Product and ProductVariant (the purchasable SKU).
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text, Float,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class PublishStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


# ==========================================
# 🏷️ Brand
# ==========================================

class Brand(Base):
    __tablename__ = "brands"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    logo_url = Column(String, nullable=True)
    summary = Column(Text, nullable=True)

    products = relationship("Product", back_populates="brand")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "logo_url": self.logo_url,
            "summary": self.summary,
        }

    def __repr__(self):
        return f"<Brand {self.slug}>"


# ==========================================
# 🗂️ Category
# ==========================================

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    cover_image = Column(String, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)

    products = relationship("Product", back_populates="category")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "cover_image": self.cover_image,
            "sort_order": self.sort_order,
        }

    def __repr__(self):
        return f"<Category {self.slug}>"


# ==========================================
# 📦 Product
# ==========================================

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    summary = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    cover_image = Column(String, nullable=True)
    status = Column(String, default=PublishStatus.DRAFT.value, nullable=False, index=True)

    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="SET NULL"), nullable=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True)

    rating_avg = Column(Float, default=0, nullable=False)
    rating_count = Column(Integer, default=0, nullable=False)
    purchase_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    brand = relationship("Brand", back_populates="products")
    category = relationship("Category", back_populates="products")
    variants = relationship(
        "ProductVariant", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductVariant.id",
    )

    @property
    def default_variant(self):
        active = [v for v in self.variants if v.is_active]
        return active[0] if active else None

    @property
    def in_stock(self) -> bool:
        return any(v.is_active and v.available_stock > 0 for v in self.variants)

    def __repr__(self):
        return f"<Product {self.slug}>"


# ==========================================
# 🔢 Product Variant (SKU)
# ==========================================

class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)  # variant label, e.g. "24VDC / 5A"

    price = Column(Numeric(14, 2), nullable=False)
    list_price = Column(Numeric(14, 2), nullable=True)
    currency = Column(String(3), default="VND", nullable=False)
    tax_included = Column(Boolean, default=False, nullable=False)

    stock_on_hand = Column(Integer, default=0, nullable=False)
    stock_reserved = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        CheckConstraint("stock_on_hand >= 0", name="ck_variant_stock_on_hand"),
        CheckConstraint("stock_reserved >= 0", name="ck_variant_stock_reserved"),
    )

    @property
    def available_stock(self) -> int:
        return max(0, (self.stock_on_hand or 0) - (self.stock_reserved or 0))

    @property
    def display_name(self) -> str:
        base = self.product.name if self.product else self.sku
        return f"{base} - {self.name}" if self.name else base

    def __repr__(self):
        return f"<ProductVariant {self.sku}>"
