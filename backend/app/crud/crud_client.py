"""CRUD operations for clients."""

from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.crud.base import CRUDBase, commit_or_rollback
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.recurring_template import RecurringTemplate


class CRUDClient(CRUDBase[Client]):
    entity_name = "Client"

    def delete(self, db: Session, *, id: int, owner_id: int) -> bool:
        client = self.get(db, id=id, owner_id=owner_id)
        if client is None:
            return False
        has_invoices = db.query(Invoice.id).filter(Invoice.client_id == client.id).first() is not None
        has_templates = (
            db.query(RecurringTemplate.id).filter(RecurringTemplate.client_id == client.id).first() is not None
        )
        if has_invoices or has_templates:
            raise ValidationError("Client is referenced by invoices or recurring templates and cannot be deleted")
        db.delete(client)
        commit_or_rollback(db)
        return True


client_crud = CRUDClient(Client)
