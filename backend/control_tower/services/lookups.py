"""Module: lookups.

Read-side helpers used to resolve references and denormalize display names.
Tombstoned rows are treated as missing.
"""

from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from control_tower.core.errors import NotFoundError
from control_tower.db.models.client import Client
from control_tower.db.models.deployment import Deployment
from control_tower.db.models.product import Product


def _live(entity):
    if entity is None or entity.deleted_at is not None:
        return None
    return entity


def get_deployment(db: Session, deployment_id: uuid.UUID) -> Deployment:
    deployment = _live(db.get(Deployment, deployment_id))
    if not deployment:
        raise NotFoundError("Deployment not found")
    return deployment


def get_product(db: Session, product_id: uuid.UUID) -> Product:
    product = _live(db.get(Product, product_id))
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_clients(db: Session, client_ids: list[uuid.UUID]) -> list[Client]:
    """Resolve clients keeping the caller's order; any missing id raises."""
    clients = []
    for client_id in client_ids:
        client = _live(db.get(Client, client_id))
        if not client:
            raise NotFoundError(f"Client not found: {client_id}")
        clients.append(client)
    return clients
