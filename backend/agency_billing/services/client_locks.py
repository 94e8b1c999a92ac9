from __future__ import annotations

from sqlalchemy.orm import Session

from agency_billing.models.client import Client
from agency_billing.services.errors import NotFoundError


def lock_client(db: Session, client_id: int) -> Client:
    """Row-lock the client so billing mutations for it run one at a time.

    The lock is held until the caller's transaction ends.
    """
    client = db.query(Client).filter(Client.id == client_id).with_for_update().first()
    if client is None:
        raise NotFoundError(f"Client {client_id} not found")
    return client
