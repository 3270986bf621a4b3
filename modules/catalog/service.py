"""
Catalog Module - Service Layer
================================
Business logic for Brands, Categories, Products and Variants.
Also the catalog collaborator used by cart/checkout: variant lookup,
current price and available stock.
"""

from typing import List, Optional, Tuple, Type

from sqlalchemy import func, or_, and_, desc, asc
from sqlalchemy.orm import Session, joinedload

from common.exceptions import ConflictError, NotFoundError, InvalidInputError
from common.helpers import slugify, money, parse_paging
from modules.catalog.models import Brand, Category, Product, ProductVariant, PublishStatus


# ==========================================
# Serializers
# ==========================================

def variant_to_dict(v: ProductVariant) -> dict:
    return {
        "id": v.id,
        "sku": v.sku,
        "name": v.name,
        "price": money(v.price),
        "list_price": money(v.list_price) if v.list_price is not None else None,
        "currency": v.currency,
        "tax_included": v.tax_included,
        "stock_on_hand": v.stock_on_hand,
        "available": v.available_stock,
        "in_stock": v.available_stock > 0,
        "is_active": v.is_active,
    }


def product_card(p: Product) -> dict:
    """Compact product shape for listings."""
    dv = p.default_variant
    return {
        "id": p.id,
        "slug": p.slug,
        "name": p.name,
        "sku": dv.sku if dv else None,
        "image": p.cover_image or "",
        "brand": p.brand.name if p.brand else None,
        "brand_slug": p.brand.slug if p.brand else None,
        "category": p.category.name if p.category else None,
        "category_slug": p.category.slug if p.category else None,
        "price": money(dv.price) if dv else None,
        "currency": dv.currency if dv else None,
        "in_stock": p.in_stock,
        "summary": p.summary or "",
        "rating_avg": p.rating_avg or 0,
        "rating_count": p.rating_count or 0,
        "purchase_count": p.purchase_count or 0,
    }


def product_detail(p: Product) -> dict:
    data = product_card(p)
    data.update({
        "description": p.description,
        "status": p.status,
        "brand": p.brand.to_dict() if p.brand else None,
        "category": p.category.to_dict() if p.category else None,
        "variants": [variant_to_dict(v) for v in p.variants if v.is_active],
    })
    return data


# ==========================================
# Slug helpers
# ==========================================

def _resolve_slug(db: Session, model: Type, name: str, slug: Optional[str], exclude_id: Optional[int] = None) -> str:
    final = (slug or "").strip() or slugify(name)
    q = db.query(model.id).filter(model.slug == final)
    if exclude_id:
        q = q.filter(model.id != exclude_id)
    if q.first():
        raise ConflictError("Slug already exists.", code="SLUG_EXISTS")
    return final


# ==========================================
# Brand / Category (simple taxonomy CRUD)
# ==========================================

class TaxonomyService:
    """Shared CRUD for Brand and Category."""

    def __init__(self, model: Type, label: str):
        self.model = model
        self.label = label

    def list(self, db: Session, q: str = "", page: int = None, page_size: int = None) -> Tuple[List, int]:
        query = db.query(self.model)
        if q:
            like = f"%{q.strip()}%"
            query = query.filter(or_(self.model.name.ilike(like), self.model.slug.ilike(like)))
        total = query.count()
        query = query.order_by(self.model.name.asc())
        if page or page_size:
            _, size, offset = parse_paging(page, page_size)
            query = query.offset(offset).limit(size)
        return query.all(), total

    def get(self, db: Session, entity_id: int):
        entity = db.query(self.model).filter(self.model.id == entity_id).first()
        if not entity:
            raise NotFoundError(f"{self.label} not found.")
        return entity

    def create(self, db: Session, data: dict):
        data = dict(data)
        data["slug"] = _resolve_slug(db, self.model, data["name"], data.get("slug"))
        entity = self.model(**data)
        db.add(entity)
        db.flush()
        return entity

    def update(self, db: Session, entity_id: int, data: dict):
        entity = self.get(db, entity_id)
        if "slug" in data:
            data["slug"] = _resolve_slug(
                db, self.model, data.get("name") or entity.name, data.get("slug"), exclude_id=entity.id,
            )
        for key, value in data.items():
            setattr(entity, key, value)
        db.flush()
        return entity

    def delete(self, db: Session, entity_id: int) -> None:
        entity = self.get(db, entity_id)
        db.delete(entity)
        db.flush()


brand_service = TaxonomyService(Brand, "Brand")
category_service = TaxonomyService(Category, "Category")


# ==========================================
# Product Service
# ==========================================

SORTS = {
    "price_asc": ("price", asc),
    "price_desc": ("price", desc),
    "name_asc": ("name", asc),
    "name_desc": ("name", desc),
}


class ProductService:

    def _price_subquery(self, db: Session):
        return (
            db.query(
                ProductVariant.product_id.label("product_id"),
                func.min(ProductVariant.price).label("min_price"),
            )
            .filter(ProductVariant.is_active == True)
            .group_by(ProductVariant.product_id)
            .subquery()
        )

    def list_products(
        self,
        db: Session,
        q: str = "",
        brand: str = None,
        category: str = None,
        min_price: float = None,
        max_price: float = None,
        in_stock: bool = False,
        sort: str = "relevance",
        status: Optional[str] = PublishStatus.PUBLISHED.value,
        page: int = 1,
        page_size: int = 12,
    ) -> Tuple[List[Product], int, int, int]:
        """
        Filtered, sorted, paged product listing.
        Returns: (products, total, page, page_size)
        """
        page, page_size, offset = parse_paging(page, page_size, default_size=12)
        price_sq = self._price_subquery(db)

        query = (
            db.query(Product)
            .outerjoin(price_sq, price_sq.c.product_id == Product.id)
            .options(joinedload(Product.brand), joinedload(Product.category))
        )

        if status:
            query = query.filter(Product.status == status)
        if q:
            like = f"%{q.strip()}%"
            query = query.filter(or_(
                Product.name.ilike(like),
                Product.description.ilike(like),
                Product.variants.any(ProductVariant.sku.ilike(like)),
            ))
        if brand:
            query = query.filter(Product.brand.has(Brand.slug == brand))
        if category:
            query = query.filter(Product.category.has(Category.slug == category))
        if min_price is not None:
            query = query.filter(price_sq.c.min_price >= min_price)
        if max_price is not None:
            query = query.filter(price_sq.c.min_price <= max_price)
        if in_stock:
            query = query.filter(Product.variants.any(and_(
                ProductVariant.is_active == True,
                ProductVariant.stock_on_hand - ProductVariant.stock_reserved > 0,
            )))

        total = query.count()

        field, direction = SORTS.get(sort, ("created_at", desc))
        if field == "price":
            query = query.order_by(direction(price_sq.c.min_price), Product.id)
        elif field == "name":
            query = query.order_by(direction(Product.name), Product.id)
        else:
            query = query.order_by(desc(Product.created_at), desc(Product.id))

        rows = query.offset(offset).limit(page_size).all()
        return rows, total, page, page_size

    def get_by_slug(self, db: Session, slug: str, published_only: bool = True) -> Product:
        query = db.query(Product).filter(Product.slug == slug)
        if published_only:
            query = query.filter(Product.status == PublishStatus.PUBLISHED.value)
        product = query.first()
        if not product:
            raise NotFoundError("Product not found.")
        return product

    def get_by_id(self, db: Session, product_id: int) -> Product:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found.")
        return product

    def create(self, db: Session, data: dict) -> Product:
        data = dict(data)
        variants = data.pop("variants", None) or []
        self._check_refs(db, data)
        data["slug"] = _resolve_slug(db, Product, data["name"], data.get("slug"))
        product = Product(**data)
        db.add(product)
        db.flush()
        for v in variants:
            variant_service.create(db, product.id, v)
        db.refresh(product)
        return product

    def update(self, db: Session, product_id: int, data: dict) -> Product:
        product = self.get_by_id(db, product_id)
        self._check_refs(db, data)
        if "slug" in data:
            data["slug"] = _resolve_slug(
                db, Product, data.get("name") or product.name, data.get("slug"), exclude_id=product.id,
            )
        for key, value in data.items():
            setattr(product, key, value)
        db.flush()
        return product

    def delete(self, db: Session, product_id: int) -> None:
        product = self.get_by_id(db, product_id)
        db.delete(product)
        db.flush()

    def _check_refs(self, db: Session, data: dict) -> None:
        if data.get("brand_id") is not None:
            brand_service.get(db, data["brand_id"])
        if data.get("category_id") is not None:
            category_service.get(db, data["category_id"])
        if data.get("status") and data["status"] not in {s.value for s in PublishStatus}:
            raise InvalidInputError("Invalid publish status.")


product_service = ProductService()


# ==========================================
# Variant Service (catalog collaborator for cart / checkout)
# ==========================================

class VariantService:

    def get(self, db: Session, variant_id: int) -> Optional[ProductVariant]:
        return db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()

    def get_by_sku(self, db: Session, sku: str) -> Optional[ProductVariant]:
        return db.query(ProductVariant).filter(ProductVariant.sku == sku.strip()).first()

    def find_purchasable(self, db: Session, variant_id: int = None, sku: str = None) -> ProductVariant:
        """Resolve a sellable variant by id or SKU. Raises NotFoundError."""
        variant = None
        if variant_id:
            variant = self.get(db, variant_id)
        elif sku:
            variant = self.get_by_sku(db, sku)
        if not variant or not variant.is_active:
            raise NotFoundError("Product not found.", code="PRODUCT_NOT_FOUND")
        return variant

    def get_public_by_sku(self, db: Session, sku: str) -> ProductVariant:
        variant = self.get_by_sku(db, sku)
        if (
            not variant or not variant.is_active
            or variant.product.status != PublishStatus.PUBLISHED.value
        ):
            raise NotFoundError("Variant not found.")
        return variant

    def create(self, db: Session, product_id: int, data: dict) -> ProductVariant:
        if self.get_by_sku(db, data["sku"]):
            raise ConflictError("SKU already exists.", code="SKU_EXISTS")
        variant = ProductVariant(product_id=product_id, **data)
        db.add(variant)
        db.flush()
        return variant

    def update(self, db: Session, variant_id: int, data: dict) -> ProductVariant:
        variant = self.get(db, variant_id)
        if not variant:
            raise NotFoundError("Variant not found.")
        if data.get("sku") and data["sku"] != variant.sku and self.get_by_sku(db, data["sku"]):
            raise ConflictError("SKU already exists.", code="SKU_EXISTS")
        for key, value in data.items():
            setattr(variant, key, value)
        db.flush()
        return variant

    def delete(self, db: Session, variant_id: int) -> None:
        variant = self.get(db, variant_id)
        if not variant:
            raise NotFoundError("Variant not found.")
        db.delete(variant)
        db.flush()


variant_service = VariantService()
