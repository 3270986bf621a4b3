"""
Search Module - Service Layer
===============================
Accent-insensitive product / brand / category search with a relevance
score, plus autocomplete suggestions.

Matching runs on diacritic-folded text in Python so "cam bien" finds
"Cảm biến" on any database backend.
"""

from typing import List, Optional
from urllib.parse import quote

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from common.helpers import normalize_text, money
from modules.catalog.models import Brand, Category, Product, PublishStatus

MIN_QUERY_LENGTH = 2

POPULAR_SEARCHES = [
    "PLC Siemens",
    "Cảm biến Omron",
    "Biến tần Schneider",
    "Động cơ servo",
    "HMI",
    "Relay",
    "Contactor",
    "MCB",
]


# ==========================================
# Scoring
# ==========================================

def _skus(product: Product) -> List[str]:
    return [v.sku for v in product.variants if v.is_active]


def product_matches(product: Product, query: str) -> bool:
    q = normalize_text(query)
    words = q.split()
    name = normalize_text(product.name)
    description = normalize_text(product.description)
    fields = [
        name,
        description,
        normalize_text(product.brand.name) if product.brand else "",
        normalize_text(product.brand.slug) if product.brand else "",
        normalize_text(product.category.name) if product.category else "",
    ] + [normalize_text(s) for s in _skus(product)]
    if any(q in f for f in fields if f):
        return True
    return any(w in name or w in description for w in words)


def relevance(product: Product, query: str) -> float:
    """
    +100 name contains query, +50 name starts with it, +80 SKU contains it,
    +40 brand contains it, +10 per query word in the name, +5 description
    contains it, then +2 x rating and up to +20 for purchases.
    """
    q = normalize_text(query)
    words = q.split()
    name = normalize_text(product.name)
    score = 0.0

    if q in name:
        score += 100
    if name.startswith(q):
        score += 50
    if any(q in normalize_text(s) for s in _skus(product)):
        score += 80
    if product.brand and q in normalize_text(product.brand.name):
        score += 40
    score += 10 * sum(1 for w in words if w in name)
    if product.description and q in normalize_text(product.description):
        score += 5

    score += (product.rating_avg or 0) * 2
    score += min((product.purchase_count or 0) * 0.1, 20)
    return score


class SearchService:

    def _published_products(self, db: Session) -> List[Product]:
        return (
            db.query(Product)
            .filter(Product.status == PublishStatus.PUBLISHED.value)
            .options(
                joinedload(Product.brand),
                joinedload(Product.category),
                selectinload(Product.variants),
            )
            .all()
        )

    def _product_counts(self, db: Session, column) -> dict:
        rows = (
            db.query(column, func.count(Product.id))
            .filter(Product.status == PublishStatus.PUBLISHED.value, column.isnot(None))
            .group_by(column)
            .all()
        )
        return dict(rows)

    # ==========================================
    # Full search
    # ==========================================

    def search_products(self, db: Session, query: str, limit: int, include_out_of_stock: bool = False) -> List[dict]:
        scored = []
        for p in self._published_products(db):
            if not include_out_of_stock and not p.in_stock:
                continue
            if product_matches(p, query):
                scored.append((relevance(p, query), p))
        scored.sort(key=lambda pair: (-pair[0], pair[1].id))

        results = []
        for score, p in scored[:limit]:
            dv = p.default_variant
            results.append({
                "id": p.id,
                "slug": p.slug,
                "name": p.name,
                "sku": dv.sku if dv else None,
                "description": p.description,
                "image": p.cover_image,
                "price": money(dv.price) if dv else 0,
                "currency": dv.currency if dv else None,
                "in_stock": p.in_stock,
                "rating": {"avg": p.rating_avg or 0, "count": p.rating_count or 0},
                "purchase_count": p.purchase_count or 0,
                "brand": {"name": p.brand.name, "slug": p.brand.slug, "logo": p.brand.logo_url} if p.brand else None,
                "category": {"name": p.category.name, "slug": p.category.slug} if p.category else None,
                "relevance": round(score, 2),
            })
        return results

    def search_brands(self, db: Session, query: str, limit: int) -> List[dict]:
        q = normalize_text(query)
        counts = self._product_counts(db, Product.brand_id)
        hits = [
            b for b in db.query(Brand).all()
            if q in normalize_text(b.name) or q in normalize_text(b.slug) or q in normalize_text(b.summary)
        ]
        hits.sort(key=lambda b: (-counts.get(b.id, 0), b.name))
        return [{
            "id": b.id,
            "slug": b.slug,
            "name": b.name,
            "logo": b.logo_url,
            "summary": b.summary,
            "product_count": counts.get(b.id, 0),
        } for b in hits[:limit]]

    def search_categories(self, db: Session, query: str, limit: int) -> List[dict]:
        q = normalize_text(query)
        counts = self._product_counts(db, Product.category_id)
        hits = [
            c for c in db.query(Category).all()
            if q in normalize_text(c.name) or q in normalize_text(c.slug) or q in normalize_text(c.description)
        ]
        hits.sort(key=lambda c: (-counts.get(c.id, 0), c.name))
        return [{
            "id": c.id,
            "slug": c.slug,
            "name": c.name,
            "image": c.cover_image,
            "description": c.description,
            "product_count": counts.get(c.id, 0),
        } for c in hits[:limit]]

    def search(
        self, db: Session, query: str, limit: int = 10, kind: str = "all", include_out_of_stock: bool = False,
    ) -> dict:
        query = (query or "").strip()
        result = {"products": [], "brands": [], "categories": [], "query": query, "suggestions": []}
        if len(query) < MIN_QUERY_LENGTH:
            return result

        if kind in ("products", "all"):
            result["products"] = self.search_products(db, query, limit, include_out_of_stock)
        if kind in ("brands", "all"):
            result["brands"] = self.search_brands(db, query, min(limit, 10))
        if kind in ("categories", "all"):
            result["categories"] = self.search_categories(db, query, min(limit, 10))

        result["suggestions"] = self._suggestions(result["products"])
        return result

    def _suggestions(self, products: List[dict]) -> List[str]:
        seen = []
        for p in products:
            if p["brand"] and p["brand"]["name"] not in seen:
                seen.append(p["brand"]["name"])
        for p in products:
            if p["category"] and p["category"]["name"] not in seen:
                seen.append(p["category"]["name"])
        for p in products[:3]:
            for word in p["name"].split():
                if len(word) > 3 and word not in seen:
                    seen.append(word)
        return seen[:5]

    # ==========================================
    # Autocomplete
    # ==========================================

    def autocomplete(self, db: Session, query: str, limit: int = 10) -> List[dict]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return [{"type": "popular", "text": text, "icon": "trending"} for text in POPULAR_SEARCHES[:limit]]

        q = normalize_text(query)
        suggestions = []

        products = [
            p for p in self._published_products(db)
            if q in normalize_text(p.name) or any(q in normalize_text(s) for s in _skus(p))
        ]
        products.sort(key=lambda p: (-(p.purchase_count or 0), -(p.rating_avg or 0), p.id))
        for p in products[:5]:
            dv = p.default_variant
            suggestions.append({
                "type": "product",
                "text": p.name,
                "subtext": dv.sku if dv else None,
                "url": f"/shop/products/{p.slug}",
                "image": p.cover_image,
                "icon": "package",
            })

        for b in self.search_brands(db, query, 3):
            suggestions.append({
                "type": "brand",
                "text": b["name"],
                "subtext": "Thương hiệu",
                "url": f"/shop/products?brand={b['slug']}",
                "image": b["logo"],
                "icon": "award",
            })

        for c in self.search_categories(db, query, 3):
            suggestions.append({
                "type": "category",
                "text": c["name"],
                "subtext": "Danh mục",
                "url": f"/shop/products?category={c['slug']}",
                "image": c["image"],
                "icon": "grid",
            })

        if suggestions:
            suggestions.insert(0, {
                "type": "search",
                "text": query,
                "subtext": f'Tìm kiếm "{query}"',
                "url": f"/shop/products?q={quote(query, safe='')}",
                "icon": "search",
            })

        return suggestions[:limit]


# Singleton
search_service = SearchService()
