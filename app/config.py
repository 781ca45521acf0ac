import os
import tempfile

from dotenv import load_dotenv

# Absolute path of the project root (one level above the app package)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
dotenv_path = os.path.join(BASE_DIR, '.env')

load_dotenv(dotenv_path=dotenv_path, override=True)

DATABASE_URL: str = os.environ.get("INVOICE_DATABASE_URL", "sqlite:///./invoices.db")

# --- PDF output ---
PDF_OUTPUT_DIR: str = os.environ.get("INVOICE_PDF_DIR") or tempfile.gettempdir()
PDF_TEMPLATE: str = os.environ.get("INVOICE_PDF_TEMPLATE", "classic")
PDF_FONT_PATH: str | None = os.environ.get("INVOICE_PDF_FONT")
PDF_FONT_BOLD_PATH: str | None = os.environ.get("INVOICE_PDF_FONT_BOLD")

# --- Server / logging ---
LOG_LEVEL: str = os.environ.get("INVOICE_LOG_LEVEL", "INFO").upper()
HOST: str = os.environ.get("INVOICE_HOST", "127.0.0.1")
PORT: int = int(os.environ.get("INVOICE_PORT", "8001"))
