"""CRUD operations for recurring templates and their items."""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from backend.app.core.errors import NotFoundError
from backend.app.core.time import utc_now
from backend.app.crud.base import CRUDBase, as_update_dict, commit_or_rollback
from backend.app.crud.crud_client import client_crud
from backend.app.models.invoice import Invoice
from backend.app.models.recurring_template import RecurringTemplate
from backend.app.models.recurring_template_item import RecurringTemplateItem
from backend.app.schemas.recurring_template import (
    RecurringTemplateCreate,
    RecurringTemplateItemCreate,
    RecurringTemplateItemUpdate,
    RecurringTemplateUpdate,
)
from backend.app.services.billing import calculate_line_amount


class CRUDRecurringTemplate(CRUDBase[RecurringTemplate]):
    entity_name = "Recurring template"

    def create(self, db: Session, *, obj_in: RecurringTemplateCreate, owner_id: int) -> RecurringTemplate:
        client_crud.get_or_raise(db, id=obj_in.client_id, owner_id=owner_id)
        template = RecurringTemplate(owner_id=owner_id, **obj_in.model_dump(exclude={"items"}))
        for item_in in obj_in.items:
            template.items.append(
                RecurringTemplateItem(
                    description=item_in.description,
                    quantity=item_in.quantity,
                    unit_price=item_in.unit_price,
                    amount=calculate_line_amount(item_in.quantity, item_in.unit_price),
                )
            )
        db.add(template)
        commit_or_rollback(db)
        db.refresh(template)
        return template

    def get_multi(self, db: Session, *, owner_id: int) -> List[RecurringTemplate]:
        return (
            self.scoped_query(db, owner_id)
            .order_by(RecurringTemplate.next_generation_date.asc(), RecurringTemplate.id.asc())
            .all()
        )

    def update(
        self, db: Session, *, id: int, owner_id: int, obj_in: RecurringTemplateUpdate
    ) -> RecurringTemplate:
        update_data = as_update_dict(obj_in)
        if update_data.get("client_id") is not None:
            client_crud.get_or_raise(db, id=update_data["client_id"], owner_id=owner_id)
        return super().update(db, id=id, owner_id=owner_id, obj_in=update_data)

    def set_active(self, db: Session, *, id: int, owner_id: int, active: bool) -> RecurringTemplate:
        return super().update(db, id=id, owner_id=owner_id, obj_in={"active": active})

    def delete(self, db: Session, *, id: int, owner_id: int) -> bool:
        template = self.get(db, id=id, owner_id=owner_id)
        if template is None:
            return False
        # Generated invoices outlive their template
        db.query(Invoice).filter(Invoice.recurring_template_id == template.id).update(
            {Invoice.recurring_template_id: None}, synchronize_session=False
        )
        db.delete(template)
        commit_or_rollback(db)
        return True

    # Used by the generation engine; unscoped unless an owner is given.

    def get_due(
        self, db: Session, *, reference_date: date, owner_id: Optional[int] = None
    ) -> List[RecurringTemplate]:
        query = db.query(RecurringTemplate).filter(
            RecurringTemplate.active.is_(True),
            RecurringTemplate.next_generation_date <= reference_date,
        )
        if owner_id is not None:
            query = query.filter(RecurringTemplate.owner_id == owner_id)
        return query.order_by(RecurringTemplate.next_generation_date.asc(), RecurringTemplate.id.asc()).all()

    def get_unscoped(self, db: Session, *, id: int) -> Optional[RecurringTemplate]:
        return db.query(RecurringTemplate).filter(RecurringTemplate.id == id).first()

    def advance_schedule(self, db: Session, *, id: int, expected_date: date, new_date: date) -> bool:
        """Compare-and-swap ``next_generation_date``; False when another writer moved it first.

        Does not commit: the caller's unit of work owns the transaction.
        """
        claimed = (
            db.query(RecurringTemplate)
            .filter(RecurringTemplate.id == id, RecurringTemplate.next_generation_date == expected_date)
            .update(
                {RecurringTemplate.next_generation_date: new_date, RecurringTemplate.updated_at: utc_now()},
                synchronize_session=False,
            )
        )
        return claimed == 1


class CRUDRecurringTemplateItem:
    entity_name = "Recurring template item"

    def _scoped_query(self, db: Session, owner_id: int):
        return (
            db.query(RecurringTemplateItem)
            .join(RecurringTemplate, RecurringTemplateItem.template_id == RecurringTemplate.id)
            .filter(RecurringTemplate.owner_id == owner_id)
        )

    def get(self, db: Session, *, id: int, owner_id: int) -> Optional[RecurringTemplateItem]:
        return self._scoped_query(db, owner_id).filter(RecurringTemplateItem.id == id).first()

    def get_multi(self, db: Session, *, template_id: int, owner_id: int) -> List[RecurringTemplateItem]:
        recurring_template_crud.get_or_raise(db, id=template_id, owner_id=owner_id)
        return (
            self._scoped_query(db, owner_id)
            .filter(RecurringTemplateItem.template_id == template_id)
            .order_by(RecurringTemplateItem.id.asc())
            .all()
        )

    def create(
        self, db: Session, *, template_id: int, owner_id: int, obj_in: RecurringTemplateItemCreate
    ) -> RecurringTemplateItem:
        template = recurring_template_crud.get_or_raise(db, id=template_id, owner_id=owner_id)
        item = RecurringTemplateItem(
            description=obj_in.description,
            quantity=obj_in.quantity,
            unit_price=obj_in.unit_price,
            amount=calculate_line_amount(obj_in.quantity, obj_in.unit_price),
        )
        template.items.append(item)
        commit_or_rollback(db)
        db.refresh(item)
        return item

    def update(
        self, db: Session, *, id: int, owner_id: int, obj_in: RecurringTemplateItemUpdate
    ) -> RecurringTemplateItem:
        item = self.get(db, id=id, owner_id=owner_id)
        if item is None:
            raise NotFoundError(self.entity_name)
        for field, value in as_update_dict(obj_in).items():
            if value is not None:
                setattr(item, field, value)
        item.amount = calculate_line_amount(item.quantity, item.unit_price)
        commit_or_rollback(db)
        db.refresh(item)
        return item

    def delete(self, db: Session, *, id: int, owner_id: int) -> bool:
        item = self.get(db, id=id, owner_id=owner_id)
        if item is None:
            return False
        db.delete(item)
        commit_or_rollback(db)
        return True


recurring_template_crud = CRUDRecurringTemplate(RecurringTemplate)
recurring_template_item_crud = CRUDRecurringTemplateItem()
