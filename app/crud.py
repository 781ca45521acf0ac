import logging
import re

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .snapshot import apply_snapshot, release_business, release_client

logger = logging.getLogger(__name__)

INVOICE_NUMBER_PATTERN = re.compile(r"^[A-Za-z]+-(\d{4,})$")
INVOICE_NUMBER_PREFIX = "INV"


# --- Business profiles ---
def get_business_profile(db: Session, profile_id: int):
    return db.query(models.BusinessProfile).filter(models.BusinessProfile.id == profile_id).first()

def get_business_profiles(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.BusinessProfile).order_by(models.BusinessProfile.name).offset(skip).limit(limit).all()

def create_business_profile(db: Session, profile: schemas.BusinessProfileCreate):
    db_profile = models.BusinessProfile(**profile.model_dump())
    db.add(db_profile)
    db.commit()
    db.refresh(db_profile)
    return db_profile

def update_business_profile(db: Session, profile_id: int, profile_data: schemas.BusinessProfileCreate):
    """Edits the live profile only; invoices keep the values frozen when they were saved."""
    db_profile = get_business_profile(db, profile_id)
    if not db_profile:
        return None
    for key, value in profile_data.model_dump().items():
        setattr(db_profile, key, value)
    db.commit()
    db.refresh(db_profile)
    return db_profile

def set_business_logo(db: Session, profile_id: int, logo: bytes | None):
    db_profile = get_business_profile(db, profile_id)
    if not db_profile:
        return None
    db_profile.logo = logo or None
    db.commit()
    db.refresh(db_profile)
    return db_profile

def delete_business_profile(db: Session, profile_id: int) -> bool:
    db_profile = get_business_profile(db, profile_id)
    if not db_profile:
        return False
    release_business(db, db_profile)
    db.flush()
    db.delete(db_profile)
    db.commit()
    return True


# --- Clients ---
def get_client(db: Session, client_id: int):
    return db.query(models.Client).filter(models.Client.id == client_id).first()

def get_clients(db: Session, skip: int = 0, limit: int = 100):
    return db.query(models.Client).order_by(models.Client.name).offset(skip).limit(limit).all()

def create_client(db: Session, client: schemas.ClientCreate):
    db_client = models.Client(**client.model_dump())
    db.add(db_client)
    db.commit()
    db.refresh(db_client)
    return db_client

def update_client(db: Session, client_id: int, client_data: schemas.ClientCreate):
    db_client = get_client(db, client_id)
    if not db_client:
        return None
    for key, value in client_data.model_dump().items():
        setattr(db_client, key, value)
    db.commit()
    db.refresh(db_client)
    return db_client

def set_client_logo(db: Session, client_id: int, logo: bytes | None):
    db_client = get_client(db, client_id)
    if not db_client:
        return None
    db_client.logo = logo or None
    db.commit()
    db.refresh(db_client)
    return db_client

def delete_client(db: Session, client_id: int) -> bool:
    db_client = get_client(db, client_id)
    if not db_client:
        return False
    release_client(db, db_client)
    db.flush()
    db.delete(db_client)
    db.commit()
    return True


# --- Invoices ---
def _build_line_items(line_items_data: list) -> list:
    items = []
    for position, item_data in enumerate(line_items_data):
        data = item_data.model_dump() if hasattr(item_data, "model_dump") else dict(item_data)
        items.append(models.LineItem(
            title=data.get("title", ""),
            quantity=data.get("quantity", 0),
            unit_price=data.get("unit_price", 0),
            position=position,
        ))
    return items

def _invoice_fields(invoice: schemas.InvoiceCreate) -> dict:
    return invoice.model_dump(exclude={"line_items", "business_id", "client_id"})

def get_invoice(db: Session, invoice_id: int):
    return (
        db.query(models.Invoice)
        .options(selectinload(models.Invoice.line_items))
        .filter(models.Invoice.id == invoice_id)
        .first()
    )

def get_invoices(db: Session, status: str | None = None, search: str | None = None, skip: int = 0, limit: int = 100):
    query = db.query(models.Invoice).options(selectinload(models.Invoice.line_items))
    if status == "paid":
        query = query.filter(models.Invoice.paid_at.isnot(None))
    elif status == "unpaid":
        query = query.filter(models.Invoice.paid_at.is_(None))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(models.Invoice.number.ilike(pattern), models.Invoice.client_name.ilike(pattern)))
    return (
        query.order_by(models.Invoice.issue_date.desc(), models.Invoice.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )

def create_invoice(db: Session, invoice: schemas.InvoiceCreate, business: models.BusinessProfile | None = None,
                   client: models.Client | None = None):
    db_invoice = models.Invoice(**_invoice_fields(invoice))
    db_invoice.line_items = _build_line_items(invoice.line_items)
    apply_snapshot(db_invoice, business=business, client=client)
    db.add(db_invoice)
    db.commit()
    db.refresh(db_invoice)
    logger.info("Created invoice %s (id=%s)", db_invoice.number, db_invoice.id)
    return db_invoice

def update_invoice(db: Session, invoice_id: int, invoice_data: schemas.InvoiceUpdate,
                   business: models.BusinessProfile | None = None, client: models.Client | None = None):
    """Overwrites invoice fields, replaces all line items and re-runs the snapshot copy."""
    db_invoice = get_invoice(db, invoice_id)
    if not db_invoice:
        return None

    for key, value in _invoice_fields(invoice_data).items():
        setattr(db_invoice, key, value)

    # Old items are orphaned (and deleted) before the new ones are attached
    db_invoice.line_items.clear()
    db.flush()
    db_invoice.line_items.extend(_build_line_items(invoice_data.line_items))

    apply_snapshot(db_invoice, business=business, client=client)
    db.commit()
    db.refresh(db_invoice)
    logger.info("Updated invoice %s (id=%s)", db_invoice.number, db_invoice.id)
    return db_invoice

def delete_invoice(db: Session, invoice_id: int) -> bool:
    db_invoice = get_invoice(db, invoice_id)
    if not db_invoice:
        return False
    db.delete(db_invoice)
    db.commit()
    logger.info("Deleted invoice id=%s", invoice_id)
    return True

def toggle_invoice_paid(db: Session, invoice_id: int):
    db_invoice = get_invoice(db, invoice_id)
    if not db_invoice:
        return None
    db_invoice.toggle_paid()
    db.commit()
    db.refresh(db_invoice)
    return db_invoice

def next_number_from(numbers) -> str:
    """
    Next sequential number: the largest suffix among numbers shaped like
    PREFIX-NNNN (at least four digits), plus one, as INV-%04d.
    """
    highest = 0
    for number in numbers:
        match = INVOICE_NUMBER_PATTERN.match((number or "").strip())
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{INVOICE_NUMBER_PREFIX}-{highest + 1:04d}"

def next_invoice_number(db: Session) -> str:
    numbers = [row[0] for row in db.query(models.Invoice.number).all()]
    return next_number_from(numbers)
