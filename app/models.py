from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, LargeBinary, Numeric, func
from sqlalchemy.orm import relationship

from .database import Base
from .totals import calculate_totals, line_total


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class BusinessProfile(TimestampMixin, Base):
    __tablename__ = "business_profiles"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    address = Column(String, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")
    tax_id = Column(String, nullable=False, default="")
    logo = Column(LargeBinary, nullable=True)  # raw image bytes

    # Lookup-only link; deleting the profile nulls Invoice.business_id
    invoices = relationship("Invoice", back_populates="business")


class Client(TimestampMixin, Base):
    __tablename__ = "clients"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, index=True, nullable=False, default="")
    address = Column(String, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")
    tax_id = Column(String, nullable=False, default="")
    logo = Column(LargeBinary, nullable=True)

    invoices = relationship("Invoice", back_populates="client")


class Invoice(Base):
    __tablename__ = "invoices"
    id = Column(Integer, primary_key=True, index=True)
    number = Column(String, index=True, nullable=False)  # not unique on purpose
    currency_code = Column(String(3), nullable=False, default="USD")
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    period_start = Column(Date, nullable=True)
    period_end = Column(Date, nullable=True)
    tax_percent = Column(Numeric(10, 3), nullable=False, default=0)
    paid_at = Column(DateTime(timezone=True), nullable=True)  # None = unpaid
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    business_id = Column(Integer, ForeignKey("business_profiles.id", ondelete="SET NULL"), nullable=True)
    business = relationship("BusinessProfile", back_populates="invoices")
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    client = relationship("Client", back_populates="invoices")

    # Snapshot of the business profile at save time
    business_name = Column(String, nullable=False, default="")
    business_address = Column(String, nullable=False, default="")
    business_phone = Column(String, nullable=False, default="")
    business_email = Column(String, nullable=False, default="")
    business_tax_id = Column(String, nullable=False, default="")
    business_logo = Column(LargeBinary, nullable=True)

    # Snapshot of the client at save time
    client_name = Column(String, nullable=False, default="")
    client_address = Column(String, nullable=False, default="")
    client_phone = Column(String, nullable=False, default="")
    client_email = Column(String, nullable=False, default="")
    client_tax_id = Column(String, nullable=False, default="")
    client_logo = Column(LargeBinary, nullable=True)

    line_items = relationship(
        "LineItem", back_populates="invoice", cascade="all, delete-orphan", order_by="LineItem.position"
    )

    # --- Display accessors (snapshot only, never the live reference) ---
    @property
    def display_business_name(self) -> str:
        return self.business_name or ""

    @property
    def display_business_address(self) -> str:
        return self.business_address or ""

    @property
    def display_business_phone(self) -> str:
        return self.business_phone or ""

    @property
    def display_business_email(self) -> str:
        return self.business_email or ""

    @property
    def display_business_tax_id(self) -> str:
        return self.business_tax_id or ""

    @property
    def display_business_logo(self) -> bytes | None:
        return self.business_logo or None

    @property
    def display_client_name(self) -> str:
        return self.client_name or ""

    @property
    def display_client_address(self) -> str:
        return self.client_address or ""

    @property
    def display_client_phone(self) -> str:
        return self.client_phone or ""

    @property
    def display_client_email(self) -> str:
        return self.client_email or ""

    @property
    def display_client_tax_id(self) -> str:
        return self.client_tax_id or ""

    @property
    def display_client_logo(self) -> bytes | None:
        return self.client_logo or None

    # --- Derived amounts ---
    @property
    def totals(self):
        return calculate_totals(((item.quantity, item.unit_price) for item in self.line_items), self.tax_percent)

    @property
    def subtotal(self):
        return self.totals.subtotal

    @property
    def tax_amount(self):
        return self.totals.tax_amount

    @property
    def total(self):
        return self.totals.total

    # --- Paid status ---
    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    @property
    def status_text(self) -> str:
        return "Paid" if self.is_paid else "Unpaid"

    def toggle_paid(self, now: datetime | None = None) -> None:
        if self.is_paid:
            self.paid_at = None
        else:
            self.paid_at = now or datetime.now(timezone.utc)


class LineItem(Base):
    __tablename__ = "line_items"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")

    @property
    def total(self):
        return line_total(self.quantity, self.unit_price)
