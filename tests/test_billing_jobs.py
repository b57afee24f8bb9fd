from datetime import date
from decimal import Decimal

import pytest

from backend.app.core.settings import Settings
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.recurring_template import RecurringTemplate
from backend.app.models.recurring_template_item import RecurringTemplateItem
from backend.app.models.user import User
from backend.app.scripts import run_billing_jobs
from backend.app.services import scheduler


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _seed():
    with SessionLocal() as db:
        user = User(email="owner@example.com", hashed_password="x")
        db.add(user)
        db.commit()
        client = Client(owner_id=user.id, name="Globex", email="billing@globex.com")
        db.add(client)
        db.commit()
        template = RecurringTemplate(
            owner_id=user.id,
            client_id=client.id,
            name="Retainer",
            frequency="monthly",
            next_generation_date=date(2024, 1, 15),
        )
        template.items.append(
            RecurringTemplateItem(description="Retainer", quantity=1, unit_price=Decimal("500.00"), amount=Decimal("500.00"))
        )
        db.add(template)
        db.add(
            Invoice(
                owner_id=user.id,
                client_id=client.id,
                invoice_number="OLD-1",
                status="sent",
                total_amount=Decimal("80.00"),
                issue_date=date(2023, 12, 1),
                due_date=date(2023, 12, 31),
            )
        )
        db.commit()


def test_daily_jobs_generate_and_sweep():
    _seed()

    report = scheduler.run_daily_billing_jobs(date(2024, 1, 20))

    assert len(report.invoices) == 1
    with SessionLocal() as db:
        statuses = {inv.invoice_number: inv.status for inv in db.query(Invoice).all()}
    assert statuses.pop("OLD-1") == "overdue"
    assert list(statuses.values()) == ["draft"]


def test_scheduler_disabled_by_default():
    settings = Settings()
    settings.scheduler_enabled = False
    assert scheduler.init_scheduler(settings) is None


def test_scheduler_registers_daily_job():
    settings = Settings()
    settings.scheduler_enabled = True
    settings.generation_hour_utc = 4
    started = scheduler.init_scheduler(settings)
    try:
        job = started.get_job(scheduler.JOB_ID)
        assert job is not None
        assert "hour='4'" in str(job.trigger)
    finally:
        scheduler.shutdown_scheduler()
    assert scheduler._scheduler is None


def test_script_runs_for_given_date():
    _seed()

    exit_code = run_billing_jobs.main(["--date", "2024-01-20"])

    assert exit_code == 0
    with SessionLocal() as db:
        assert db.query(Invoice).filter(Invoice.is_recurring.is_(True)).count() == 1
