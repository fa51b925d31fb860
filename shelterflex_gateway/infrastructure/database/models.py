"""SQLAlchemy ORM models for deals, rewards and the ledger outbox"""

from sqlalchemy import Column, String, BigInteger, DateTime, Date, Integer, ForeignKey, Text, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class DealRecord(Base):
    """Financed rent deal"""

    __tablename__ = "deal"

    id = Column(String(36), primary_key=True)
    tenant_id = Column(Text, nullable=False, index=True)
    landlord_id = Column(Text, nullable=False, index=True)
    listing_id = Column(Text, nullable=True)
    annual_rent_ngn = Column(BigInteger, nullable=False)
    deposit_ngn = Column(BigInteger, nullable=False)
    financed_amount_ngn = Column(BigInteger, nullable=False)
    term_months = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="draft")
    created_at = Column(DateTime(timezone=True), nullable=False)

    schedule = relationship(
        "ScheduleItemRecord",
        back_populates="deal",
        cascade="all, delete-orphan",
        order_by="ScheduleItemRecord.period",
    )


class ScheduleItemRecord(Base):
    """Single monthly payment within a deal's schedule"""

    __tablename__ = "deal_schedule_item"
    __table_args__ = (UniqueConstraint("deal_id", "period", name="uq_schedule_deal_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    deal_id = Column(String(36), ForeignKey("deal.id", ondelete="CASCADE"), nullable=False)
    period = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount_minor = Column(BigInteger, nullable=False)  # kobo
    status = Column(Text, nullable=False, default="upcoming")

    deal = relationship("DealRecord", back_populates="schedule")


class RewardRecord(Base):
    """Whistleblower reward and its payout details"""

    __tablename__ = "reward"

    id = Column(String(36), primary_key=True)
    whistleblower_id = Column(Text, nullable=False, index=True)
    deal_id = Column(Text, nullable=False)
    listing_id = Column(Text, nullable=False)
    amount_usdc = Column(String(40), nullable=False)  # decimal string, 6 dp max
    status = Column(Text, nullable=False, default="pending")
    paid_at = Column(DateTime(timezone=True), nullable=True)
    payment_tx_id = Column(String(64), nullable=True)
    external_ref_source = Column(Text, nullable=True)
    external_ref = Column(Text, nullable=True)
    payout_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class OutboxRecord(Base):
    """Ledger write queue with retry tracking"""

    __tablename__ = "ledger_outbox"
    __table_args__ = (Index("ix_ledger_outbox_status_created", "status", "created_at"),)

    id = Column(String(36), primary_key=True)
    tx_type = Column(Text, nullable=False)
    canonical_external_ref = Column(Text, nullable=False, unique=True)
    tx_id = Column(String(64), nullable=False)
    payload = Column(JSON, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
