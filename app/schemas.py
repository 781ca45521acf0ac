from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .currency import DEFAULT_CURRENCY, normalize_currency_code


# --- Business profiles & clients ---

class PartyBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    address: str = ""
    phone: str = ""
    email: str = ""
    tax_id: str = ""


class BusinessProfileCreate(PartyBase):
    pass


class BusinessProfile(PartyBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    has_logo: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, profile) -> "BusinessProfile":
        data = cls.model_validate(profile)
        data.has_logo = bool(profile.logo)
        return data


class ClientCreate(PartyBase):
    pass


class Client(BusinessProfile):
    pass


# --- Invoices ---

class LineItemBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class LineItemCreate(LineItemBase):
    pass


class LineItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class InvoiceCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    number: str = Field(..., min_length=1)
    currency_code: str = DEFAULT_CURRENCY
    issue_date: date
    due_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    # No upper bound, matching the permissive data model
    tax_percent: Decimal = Field(Decimal("0"), ge=0)
    business_id: Optional[int] = None
    client_id: Optional[int] = None
    line_items: List[LineItemCreate] = Field(..., min_length=1)

    @field_validator("currency_code")
    @classmethod
    def _known_currency(cls, value: str) -> str:
        return normalize_currency_code(value)


class InvoiceUpdate(InvoiceCreate):
    pass


class Invoice(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: str
    currency_code: str
    issue_date: date
    due_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    tax_percent: Decimal
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    business_id: Optional[int] = None
    client_id: Optional[int] = None

    display_business_name: str
    display_business_address: str
    display_business_phone: str
    display_business_email: str
    display_business_tax_id: str
    display_client_name: str
    display_client_address: str
    display_client_phone: str
    display_client_email: str
    display_client_tax_id: str
    has_business_logo: bool = False
    has_client_logo: bool = False

    status_text: str
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    formatted_subtotal: str = ""
    formatted_tax_amount: str = ""
    formatted_total: str = ""
    line_items: List[LineItem] = []


class NextInvoiceNumber(BaseModel):
    number: str
