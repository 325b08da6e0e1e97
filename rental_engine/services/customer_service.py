from __future__ import annotations

import logging
from typing import Optional

from rental_engine.models.operations import CustomerDraft, CustomerPatch
from rental_engine.models.records import Customer
from rental_engine.models.store import RecordStore
from rental_engine.services.id_allocator import IdAllocator

logger = logging.getLogger(__name__)


class CustomerService:
    """Customer registration (with allocated IDs) and profile edits."""

    def __init__(self, store: RecordStore, allocator: IdAllocator):
        self.store = store
        self.allocator = allocator

    def create_customer(self, draft: CustomerDraft, client_ref: Optional[str] = None) -> Customer:
        name = (draft.name or "").strip()
        if not name:
            raise ValueError("Customer name is required")

        def _insert(cid: str) -> str:
            return self.store.insert_customer(Customer(
                customer_id=cid,
                name=name,
                phone=(draft.phone or "").strip(),
                address=(draft.address or "").strip(),
                aadhar_url=draft.aadhar_url,
                dl_url=draft.dl_url,
                photo_url=draft.photo_url,
                client_ref=client_ref,
            ))

        cid = self.allocator.claim_customer_id(_insert)
        logger.info("Customer %s registered", cid)
        return self.store.get_customer(cid)

    def update_customer(self, customer_id: str, patch: CustomerPatch) -> Customer:
        """Apply a partial update; RecordNotFound propagates from the store."""
        self.store.update_customer(customer_id, patch.changes())
        return self.store.get_customer(customer_id)
