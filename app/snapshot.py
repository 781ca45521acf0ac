"""
Freezes business and client data onto invoices.

An invoice carries two separate things for each party:
- a weak reference (business_id / client_id) used only to jump back to the
  source profile; it is nulled when the profile is deleted;
- snapshot columns (business_name, client_address, ...) holding the values
  that get displayed and rendered. They are written once per save and never
  synced with the live profile afterwards.
"""
import logging

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = ("name", "address", "phone", "email", "tax_id", "logo")


def _copy_fields(invoice: models.Invoice, prefix: str, source) -> None:
    for field in SNAPSHOT_FIELDS:
        value = getattr(source, field, None)
        if field == "logo":
            setattr(invoice, f"{prefix}_{field}", value or None)
        else:
            setattr(invoice, f"{prefix}_{field}", value or "")


def snapshot_business(invoice: models.Invoice, business: models.BusinessProfile | None) -> None:
    """Overwrites the business snapshot from `business`. None leaves the current snapshot in place."""
    if business is None:
        return
    invoice.business = business
    _copy_fields(invoice, "business", business)


def snapshot_client(invoice: models.Invoice, client: models.Client | None) -> None:
    """Overwrites the client snapshot from `client`. None leaves the current snapshot in place."""
    if client is None:
        return
    invoice.client = client
    _copy_fields(invoice, "client", client)


def apply_snapshot(invoice: models.Invoice, business: models.BusinessProfile | None = None,
                   client: models.Client | None = None) -> models.Invoice:
    snapshot_business(invoice, business)
    snapshot_client(invoice, client)
    return invoice


def release_business(db: Session, business: models.BusinessProfile) -> int:
    """Nulls the weak reference on every invoice that points at `business`. Snapshots stay untouched."""
    invoices = db.query(models.Invoice).filter(models.Invoice.business_id == business.id).all()
    for invoice in invoices:
        invoice.business = None
    if invoices:
        logger.info("Released business profile %s from %d invoice(s)", business.id, len(invoices))
    return len(invoices)


def release_client(db: Session, client: models.Client) -> int:
    """Nulls the weak reference on every invoice that points at `client`. Snapshots stay untouched."""
    invoices = db.query(models.Invoice).filter(models.Invoice.client_id == client.id).all()
    for invoice in invoices:
        invoice.client = None
    if invoices:
        logger.info("Released client %s from %d invoice(s)", client.id, len(invoices))
    return len(invoices)
