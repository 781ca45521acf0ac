class InvoiceAppError(Exception):
    """Base class for errors raised by the invoicing core."""
    pass


class PDFGenerationError(InvoiceAppError):
    """The invoice PDF could not be produced on disk."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class PDFWriteError(PDFGenerationError):
    """Writing or verifying the output file failed."""
    pass


class EmptyPDFError(PDFGenerationError):
    """The output file was written but is missing or zero bytes long."""
    pass
