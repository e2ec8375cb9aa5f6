# backend/shopledger/services/catalog_service.py
"""
Catalog Service - categories, products and services.

Ledger aggregates (total_sold, revenue, profit) are never writable from
here; only the sell service moves them.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..extensions import db
from ..models import Category, Product, Service, SellHistory
from ..validation import ConflictError, NotFoundError
from .sell_service import purge_sales
from .unit_of_work import lock_for_update, run_in_transaction

PRODUCT_MUTABLE_FIELDS = {"name", "initial_price_cents", "selling_price_cents", "quantity", "category_id"}
SERVICE_MUTABLE_FIELDS = {"name", "description", "default_price_cents"}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[dict]:
    """Categories with their product counts, alphabetically."""
    counts = dict(
        db.session.query(Product.category_id, func.count(Product.id))
        .filter(Product.category_id.isnot(None))
        .group_by(Product.category_id)
        .all()
    )
    categories = db.session.query(Category).order_by(Category.name.asc()).all()
    items = []
    for c in categories:
        data = c.to_dict()
        data["product_count"] = counts.get(c.id, 0)
        items.append(data)
    return items


def get_category(category_id: int) -> Category:
    category = db.session.query(Category).filter_by(id=category_id).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_category_name_free(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("Category with this name already exists")


def create_category(*, patch: dict) -> Category:
    _ensure_category_name_free(patch["name"])
    category = Category(name=patch["name"])
    db.session.add(category)
    db.session.commit()
    return category


def rename_category(category_id: int, *, patch: dict) -> Category:
    category = get_category(category_id)
    if "name" in patch:
        _ensure_category_name_free(patch["name"], exclude_id=category.id)
        category.name = patch["name"]
    db.session.commit()
    return category


def delete_category(category_id: int) -> int:
    """Delete a category; its products stay, uncategorized. Returns how many were detached."""
    def _op(session: Session) -> int:
        category = session.query(Category).filter_by(id=category_id).first()
        if not category:
            raise NotFoundError("Category not found")
        detached = (
            session.query(Product)
            .filter(Product.category_id == category.id)
            .update({Product.category_id: None}, synchronize_session="fetch")
        )
        session.delete(category)
        return detached

    detached = run_in_transaction(_op)
    current_app.logger.info("Deleted category %s; %s products detached", category_id, detached)
    return detached


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

def list_products(
    *,
    category_id: int | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional category / name filter and pagination.

    Returns dict with 'items', 'count' and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if search:
        base_query = base_query.filter(Product.name.ilike(f"%{search.strip()}%"))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _check_category(category_id: int | None) -> None:
    if category_id is not None and not db.session.query(Category).filter_by(id=category_id).first():
        raise NotFoundError("Category not found")


def create_product(*, patch: dict) -> Product:
    """Create product using a validated patch dict."""
    _check_category(patch.get("category_id"))

    p = Product(total_sold=0, revenue_cents=0, profit_cents=0)
    _apply_patch(p, patch, PRODUCT_MUTABLE_FIELDS)
    if p.quantity is None:
        p.quantity = 0

    db.session.add(p)
    db.session.commit()
    current_app.logger.info("Created product %s name=%r quantity=%s", p.id, p.name, p.quantity)
    return p


def update_product(product_id: int, *, patch: dict) -> Product:
    """
    Update catalog fields of a product.

    Changing initial_price_cents only affects future sales; recorded sales
    keep their own cost snapshot.
    """
    def _op(session: Session) -> Product:
        product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")
        if "category_id" in patch:
            _check_category(patch["category_id"])
        _apply_patch(product, patch, PRODUCT_MUTABLE_FIELDS)
        return product

    return run_in_transaction(_op)


def delete_product(product_id: int) -> None:
    """Delete a product together with its sell history."""
    def _op(session: Session) -> None:
        product = lock_for_update(session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")
        sales = session.query(SellHistory).filter_by(product_id=product.id).all()
        purge_sales(session, sales)
        session.flush()
        session.delete(product)

    run_in_transaction(_op)
    current_app.logger.info("Deleted product %s", product_id)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

def list_services() -> list[Service]:
    return db.session.query(Service).order_by(Service.name.asc(), Service.id.asc()).all()


def get_service(service_id: int) -> Service:
    service = db.session.query(Service).filter_by(id=service_id).first()
    if not service:
        raise NotFoundError("Service not found")
    return service


def _ensure_service_name_free(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Service).filter(Service.name == name)
    if exclude_id is not None:
        query = query.filter(Service.id != exclude_id)
    if query.first():
        raise ConflictError("Service with this name already exists")


def create_service(*, patch: dict) -> Service:
    _ensure_service_name_free(patch["name"])
    service = Service(total_sold=0, revenue_cents=0)
    _apply_patch(service, patch, SERVICE_MUTABLE_FIELDS)
    db.session.add(service)
    db.session.commit()
    current_app.logger.info("Created service %s name=%r", service.id, service.name)
    return service


def update_service(service_id: int, *, patch: dict) -> Service:
    def _op(session: Session) -> Service:
        service = lock_for_update(session.query(Service).filter_by(id=service_id)).first()
        if not service:
            raise NotFoundError("Service not found")
        if "name" in patch:
            _ensure_service_name_free(patch["name"], exclude_id=service.id)
        _apply_patch(service, patch, SERVICE_MUTABLE_FIELDS)
        return service

    return run_in_transaction(_op)


def delete_service(service_id: int) -> None:
    """Delete a service together with its sell history."""
    def _op(session: Session) -> None:
        service = lock_for_update(session.query(Service).filter_by(id=service_id)).first()
        if not service:
            raise NotFoundError("Service not found")
        sales = session.query(SellHistory).filter_by(service_id=service.id).all()
        purge_sales(session, sales)
        session.flush()
        session.delete(service)

    run_in_transaction(_op)
    current_app.logger.info("Deleted service %s", service_id)
