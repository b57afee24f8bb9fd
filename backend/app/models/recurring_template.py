"""Recurring template model: the schedule and snapshot a recurring invoice is built from."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.app.core.time import utc_now
from backend.app.db.base_class import Base


class RecurringTemplate(Base):
    __tablename__ = "recurring_templates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    frequency = Column(String(20), nullable=False)
    # Next occurrence still to be materialized; only the generation engine moves it
    next_generation_date = Column(Date, nullable=False, index=True)
    days_before = Column(Integer, nullable=False, default=7)
    active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    auto_send = Column(Boolean, nullable=False, default=False)
    email_template = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    owner = relationship("User", back_populates="recurring_templates")
    client = relationship("Client")
    items = relationship(
        "RecurringTemplateItem",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="RecurringTemplateItem.id",
    )
