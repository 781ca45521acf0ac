import logging
from contextlib import asynccontextmanager
from typing import List, Literal, Optional

from fastapi import FastAPI, UploadFile, File, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse, Response
from sqlalchemy.orm import Session

from app import config, crud, models, schemas
from app.currency import format_currency
from app.database import get_db, engine
from app.exceptions import PDFGenerationError
from app.pdf_generator import PDFTemplate, generate_invoice_pdf

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup
    models.Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="Invoice Desk", lifespan=lifespan)


# --- Helpers ---

def _invoice_response(invoice: models.Invoice) -> schemas.Invoice:
    data = schemas.Invoice.model_validate(invoice)
    data.has_business_logo = invoice.display_business_logo is not None
    data.has_client_logo = invoice.display_client_logo is not None
    data.formatted_subtotal = format_currency(invoice.subtotal, invoice.currency_code)
    data.formatted_tax_amount = format_currency(invoice.tax_amount, invoice.currency_code)
    data.formatted_total = format_currency(invoice.total, invoice.currency_code)
    return data


def _resolve_parties(db: Session, invoice_data: schemas.InvoiceCreate):
    """Looks up the selected business/client; an unknown id is a 404, no id means nothing selected."""
    business = client = None
    if invoice_data.business_id is not None:
        business = crud.get_business_profile(db, invoice_data.business_id)
        if not business:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business profile not found")
    if invoice_data.client_id is not None:
        client = crud.get_client(db, invoice_data.client_id)
        if not client:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return business, client


# --- Business profiles ---

@app.get("/business-profiles", response_model=List[schemas.BusinessProfile])
async def list_business_profiles(db: Session = Depends(get_db)):
    return [schemas.BusinessProfile.from_model(p) for p in crud.get_business_profiles(db)]

@app.post("/business-profiles", response_model=schemas.BusinessProfile, status_code=status.HTTP_201_CREATED)
async def create_business_profile(profile: schemas.BusinessProfileCreate, db: Session = Depends(get_db)):
    return schemas.BusinessProfile.from_model(crud.create_business_profile(db, profile))

@app.get("/business-profiles/{profile_id}", response_model=schemas.BusinessProfile)
async def get_business_profile(profile_id: int, db: Session = Depends(get_db)):
    profile = crud.get_business_profile(db, profile_id)
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business profile not found")
    return schemas.BusinessProfile.from_model(profile)

@app.put("/business-profiles/{profile_id}", response_model=schemas.BusinessProfile)
async def update_business_profile(profile_id: int, profile: schemas.BusinessProfileCreate, db: Session = Depends(get_db)):
    updated = crud.update_business_profile(db, profile_id, profile)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business profile not found")
    return schemas.BusinessProfile.from_model(updated)

@app.put("/business-profiles/{profile_id}/logo", response_model=schemas.BusinessProfile)
async def upload_business_logo(profile_id: int, logo: UploadFile = File(...), db: Session = Depends(get_db)):
    updated = crud.set_business_logo(db, profile_id, await logo.read())
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business profile not found")
    return schemas.BusinessProfile.from_model(updated)

@app.delete("/business-profiles/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_business_profile(profile_id: int, db: Session = Depends(get_db)):
    if not crud.delete_business_profile(db, profile_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Business profile not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Clients ---

@app.get("/clients", response_model=List[schemas.Client])
async def list_clients(db: Session = Depends(get_db)):
    return [schemas.Client.from_model(c) for c in crud.get_clients(db)]

@app.post("/clients", response_model=schemas.Client, status_code=status.HTTP_201_CREATED)
async def create_client(client: schemas.ClientCreate, db: Session = Depends(get_db)):
    return schemas.Client.from_model(crud.create_client(db, client))

@app.get("/clients/{client_id}", response_model=schemas.Client)
async def get_client(client_id: int, db: Session = Depends(get_db)):
    client = crud.get_client(db, client_id)
    if not client:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return schemas.Client.from_model(client)

@app.put("/clients/{client_id}", response_model=schemas.Client)
async def update_client(client_id: int, client: schemas.ClientCreate, db: Session = Depends(get_db)):
    updated = crud.update_client(db, client_id, client)
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return schemas.Client.from_model(updated)

@app.put("/clients/{client_id}/logo", response_model=schemas.Client)
async def upload_client_logo(client_id: int, logo: UploadFile = File(...), db: Session = Depends(get_db)):
    updated = crud.set_client_logo(db, client_id, await logo.read())
    if not updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return schemas.Client.from_model(updated)

@app.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: int, db: Session = Depends(get_db)):
    if not crud.delete_client(db, client_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Invoices ---

@app.get("/invoices", response_model=List[schemas.Invoice])
async def list_invoices(
    status_filter: Optional[Literal["paid", "unpaid"]] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return [_invoice_response(inv) for inv in crud.get_invoices(db, status=status_filter, search=search)]

@app.get("/invoices/next-number", response_model=schemas.NextInvoiceNumber)
async def get_next_invoice_number(db: Session = Depends(get_db)):
    return schemas.NextInvoiceNumber(number=crud.next_invoice_number(db))

@app.post("/invoices", response_model=schemas.Invoice, status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice: schemas.InvoiceCreate, db: Session = Depends(get_db)):
    business, client = _resolve_parties(db, invoice)
    return _invoice_response(crud.create_invoice(db, invoice, business=business, client=client))

@app.get("/invoices/{invoice_id}", response_model=schemas.Invoice)
async def get_invoice(invoice_id: int, db: Session = Depends(get_db)):
    invoice = crud.get_invoice(db, invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return _invoice_response(invoice)

@app.put("/invoices/{invoice_id}", response_model=schemas.Invoice)
async def update_invoice(invoice_id: int, invoice: schemas.InvoiceUpdate, db: Session = Depends(get_db)):
    if not crud.get_invoice(db, invoice_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    business, client = _resolve_parties(db, invoice)
    updated = crud.update_invoice(db, invoice_id, invoice, business=business, client=client)
    return _invoice_response(updated)

@app.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: int, db: Session = Depends(get_db)):
    if not crud.delete_invoice(db, invoice_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@app.post("/invoices/{invoice_id}/toggle-paid", response_model=schemas.Invoice)
async def toggle_invoice_paid(invoice_id: int, db: Session = Depends(get_db)):
    invoice = crud.toggle_invoice_paid(db, invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return _invoice_response(invoice)

@app.get("/invoices/{invoice_id}/pdf")
async def download_invoice_pdf(
    invoice_id: int,
    template: PDFTemplate = Query(PDFTemplate(config.PDF_TEMPLATE)),
    db: Session = Depends(get_db),
):
    invoice = crud.get_invoice(db, invoice_id)
    if not invoice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    try:
        pdf_path = generate_invoice_pdf(invoice, template)
    except PDFGenerationError as e:
        logger.error("PDF generation failed for invoice %s: %s", invoice.number, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to generate PDF: {e}")

    # Hand the file back as a download
    return FileResponse(pdf_path, media_type="application/pdf", filename=pdf_path.name)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host=config.HOST, port=config.PORT)
