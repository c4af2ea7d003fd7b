"""Module: products."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from control_tower.api.v1.routes.deps import get_actor, get_db, get_interceptor, parse_uuid
from control_tower.db.models.audit_log import AuditAction
from control_tower.db.models.product import Product
from control_tower.services import crud
from control_tower.services.audit_recorder import ActorContext
from control_tower.services.interceptor import MutationInterceptor, MutationKind

router = APIRouter()


class ProductCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    product_owner: str | None = None
    engineering_owner: str | None = None
    delivery_lead: str | None = None
    next_release_date: date | None = None
    is_adapter: bool = False
    adapter_services: dict[str, bool] | None = None
    notification_emails: list[str] = []


class ProductUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    product_owner: str | None = None
    engineering_owner: str | None = None
    delivery_lead: str | None = None
    next_release_date: date | None = None
    is_adapter: bool | None = None
    adapter_services: dict[str, bool] | None = None
    notification_emails: list[str] | None = None


def _product_out(product: Product) -> dict:
    return {
        "id": str(product.product_id),
        "name": product.name,
        "description": product.description,
        "product_owner": product.product_owner,
        "engineering_owner": product.engineering_owner,
        "delivery_lead": product.delivery_lead,
        "next_release_date": product.next_release_date,
        "is_adapter": product.is_adapter,
        "adapter_services": product.adapter_services,
        "notification_emails": product.notification_emails,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
        "deleted_at": product.deleted_at,
    }


@router.get("", summary="List products")
def list_products(db: Session = Depends(get_db)):
    return [_product_out(p) for p in crud.list_entities(db, Product, order_by=Product.name)]


@router.get("/{product_id}", summary="Get product detail")
def get_product(product_id: str, db: Session = Depends(get_db)):
    pid = parse_uuid(product_id, "product_id")
    return _product_out(crud.get_entity(db, Product, pid))


@router.post("", status_code=201, summary="Create product")
def create_product(
    payload: ProductCreatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    values = payload.model_dump(exclude_none=True)
    product = interceptor.intercept(
        db, "product", MutationKind.CREATE,
        lambda: crud.create_entity(db, Product, values),
        actor=actor,
    )
    return _product_out(product)


@router.put("/{product_id}", summary="Update product")
def update_product(
    product_id: str,
    payload: ProductUpdatePayload,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    pid = parse_uuid(product_id, "product_id")
    values = payload.model_dump(exclude_unset=True)
    product = interceptor.intercept(
        db, "product", MutationKind.UPDATE,
        lambda: crud.update_entity(db, Product, pid, values),
        entity_id=pid,
        actor=actor,
    )
    return _product_out(product)


@router.delete("/{product_id}", summary="Soft-delete product")
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    pid = parse_uuid(product_id, "product_id")
    product = interceptor.intercept(
        db, "product", MutationKind.DELETE,
        lambda: crud.soft_delete_entity(db, Product, pid),
        entity_id=pid,
        actor=actor,
    )
    return _product_out(product)


@router.post("/{product_id}/restore", summary="Restore a soft-deleted product")
def restore_product(
    product_id: str,
    db: Session = Depends(get_db),
    actor: ActorContext = Depends(get_actor),
    interceptor: MutationInterceptor = Depends(get_interceptor),
):
    pid = parse_uuid(product_id, "product_id")
    product = interceptor.intercept(
        db, "product", MutationKind.UPDATE,
        lambda: crud.restore_entity(db, Product, pid),
        entity_id=pid,
        actor=actor,
        action=AuditAction.RESTORE.value,
    )
    return _product_out(product)
