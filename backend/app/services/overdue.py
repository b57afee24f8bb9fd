"""Overdue sweep: persist the lazy overdue rule so stored status matches derived status."""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from backend.app.crud.base import commit_or_rollback
from backend.app.models.invoice import Invoice
from backend.app.services.invoice_status import OPEN_STATUSES, mark_overdue_if_due

logger = logging.getLogger(__name__)


def sweep_overdue(db: Session, reference_date: date, owner_id: Optional[int] = None) -> List[Invoice]:
    query = db.query(Invoice).filter(Invoice.status.in_(OPEN_STATUSES), Invoice.due_date < reference_date)
    if owner_id is not None:
        query = query.filter(Invoice.owner_id == owner_id)

    changed = [invoice for invoice in query.order_by(Invoice.id.asc()).all() if mark_overdue_if_due(invoice, reference_date)]
    if changed:
        commit_or_rollback(db)
    logger.info("Overdue sweep for %s marked %d invoice(s) overdue", reference_date.isoformat(), len(changed))
    return changed
