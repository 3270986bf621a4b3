"""
Search Module - Routes
========================
Endpoints:
  GET /api/search               - Products / brands / categories by relevance
  GET /api/search/autocomplete  - Typeahead suggestions
"""

import time

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from modules.search.service import search_service

router = APIRouter(prefix="/api/search", tags=["search"])


@router.get("")
async def search(
    q: str = "",
    limit: int = Query(10, ge=1),
    type: str = Query("all", pattern="^(products|brands|categories|all)$"),
    include_out_of_stock: bool = False,
    db: Session = Depends(get_db),
):
    started = time.monotonic()
    limit = min(limit, 50)
    data = search_service.search(db, q, limit=limit, kind=type, include_out_of_stock=include_out_of_stock)
    return {
        "success": True,
        "data": data,
        "meta": {
            "total_products": len(data["products"]),
            "total_brands": len(data["brands"]),
            "total_categories": len(data["categories"]),
            "search_time_ms": int((time.monotonic() - started) * 1000),
            "limit": limit,
        },
    }


@router.get("/autocomplete")
async def autocomplete(
    q: str = "",
    limit: int = Query(10, ge=1),
    db: Session = Depends(get_db),
):
    limit = min(limit, 20)
    suggestions = search_service.autocomplete(db, q, limit=limit)
    return {
        "success": True,
        "data": {"suggestions": suggestions, "query": q.strip()},
        "meta": {"count": len(suggestions)},
    }
