"""Generate a printable service invoice PDF for one service order.

The page carries the shop header, customer block, invoice number
(``SO-00042``), the item serviced, complaint / diagnosis / work done,
a parts-used table and the total cost.

Usage::

    from stock_ledger.io.invoice import generate_service_invoice

    order = ctx.services.get_order(42)
    pdf_path = generate_service_invoice(order, "invoices/SO-00042.pdf")
"""

import os
import tempfile

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from stock_ledger.config import Config
from stock_ledger.database.models import ServiceOrder
from stock_ledger.utils.formatters import (
    format_currency,
    format_date,
    format_invoice_number,
)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
LINE_HEIGHT = 5 * mm
SECTION_GAP = 4 * mm

FONT_NAME = "Helvetica"
FONT_SIZE_TITLE = 18
FONT_SIZE_HEADING = 10
FONT_SIZE_BODY = 9

# Parts table column offsets from the left margin
COL_ITEM = 0
COL_PART_NUMBER = 100 * mm
COL_QTY = 155 * mm


class _Page:
    """Tracks the cursor and starts a new page when it runs out."""

    def __init__(self, c: canvas.Canvas):
        self.c = c
        self.y = PAGE_HEIGHT - MARGIN

    def need(self, height: float):
        if self.y - height < MARGIN:
            self.c.showPage()
            self.y = PAGE_HEIGHT - MARGIN

    def line(self, text: str, x: float = MARGIN, bold: bool = False,
             size: float = FONT_SIZE_BODY):
        self.need(LINE_HEIGHT)
        self.c.setFont(FONT_NAME + ("-Bold" if bold else ""), size)
        self.c.drawString(x, self.y, text)
        self.y -= LINE_HEIGHT

    def paragraph(self, text: str):
        for chunk in simpleSplit(text, FONT_NAME, FONT_SIZE_BODY,
                                 CONTENT_WIDTH):
            self.line(chunk)

    def heading(self, text: str):
        self.y -= SECTION_GAP
        self.line(text, bold=True, size=FONT_SIZE_HEADING)

    def rule(self):
        self.need(LINE_HEIGHT)
        self.c.line(MARGIN, self.y + LINE_HEIGHT / 2,
                    PAGE_WIDTH - MARGIN, self.y + LINE_HEIGHT / 2)
        self.y -= LINE_HEIGHT / 2


def generate_service_invoice(
    order: ServiceOrder,
    output_path: str | None = None,
    shop_name: str | None = None,
    currency_symbol: str | None = None,
) -> str:
    """Render ``order`` (with ``parts_used`` loaded) to a PDF.

    Args:
        order: The service order, as returned by
            ``ServiceOrderTracker.get_order``.
        output_path: Optional output PDF path.  If *None*, creates a
            file in the system temp directory.
        shop_name: Header text.  Falls back to ``Config.SHOP_NAME``.
        currency_symbol: Falls back to ``Config.CURRENCY_SYMBOL``.

    Returns:
        Path to the generated PDF file.
    """
    invoice_number = format_invoice_number(order.id)
    if not output_path:
        output_path = os.path.join(
            tempfile.gettempdir(), f"{invoice_number}.pdf"
        )
    else:
        parent = os.path.dirname(output_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
    shop_name = shop_name or Config.SHOP_NAME
    currency_symbol = currency_symbol or Config.CURRENCY_SYMBOL

    c = canvas.Canvas(output_path, pagesize=A4)
    c.setTitle(f"Service Invoice {invoice_number}")
    page = _Page(c)

    # Header
    page.line("SERVICE INVOICE", bold=True, size=FONT_SIZE_TITLE)
    page.y -= 2 * mm
    page.line(shop_name, bold=True, size=FONT_SIZE_HEADING)
    page.rule()

    # Customer and invoice info
    page.heading("CUSTOMER INFORMATION")
    page.line(order.customer_name, bold=True)
    if order.customer_contact:
        page.line(order.customer_contact)

    page.heading("INVOICE")
    page.line(f"Invoice #: {invoice_number}")
    page.line(f"Date Received: {format_date(order.date_received)}")
    page.line(f"Date Completed: {format_date(order.completed_date)}")
    page.line(f"Status: {order.status.replace('_', ' ').upper()}")
    if order.technician_name:
        page.line(f"Technician: {order.technician_name}")

    # Item and work done
    page.heading("ITEM SERVICED")
    page.line(order.item_name, bold=True)
    if order.serial_number:
        page.line(f"Serial Number: {order.serial_number}")

    page.heading("REPORTED ISSUE")
    page.paragraph(order.complaint)
    if order.diagnosis:
        page.heading("DIAGNOSIS")
        page.paragraph(order.diagnosis)
    if order.actions_taken:
        page.heading("WORK PERFORMED")
        page.paragraph(order.actions_taken)

    # Parts used
    if order.parts_used:
        page.heading("PARTS USED")
        page.need(LINE_HEIGHT)
        c.setFont(FONT_NAME + "-Bold", FONT_SIZE_BODY)
        c.drawString(MARGIN + COL_ITEM, page.y, "Item")
        c.drawString(MARGIN + COL_PART_NUMBER, page.y, "Part Number")
        c.drawString(MARGIN + COL_QTY, page.y, "Qty")
        page.y -= LINE_HEIGHT
        c.setFont(FONT_NAME, FONT_SIZE_BODY)
        for part in order.parts_used:
            page.need(LINE_HEIGHT)
            c.setFont(FONT_NAME, FONT_SIZE_BODY)
            c.drawString(MARGIN + COL_ITEM, page.y,
                         _truncate(part.item_name, 55))
            c.drawString(MARGIN + COL_PART_NUMBER, page.y,
                         _truncate(part.part_number or "-", 28))
            c.drawString(MARGIN + COL_QTY, page.y, str(part.qty))
            page.y -= LINE_HEIGHT

    # Total
    if order.cost_estimate is not None:
        page.y -= SECTION_GAP
        page.rule()
        page.line(
            f"TOTAL COST: "
            f"{format_currency(order.cost_estimate, currency_symbol)}",
            bold=True, size=FONT_SIZE_HEADING,
        )

    c.save()
    return output_path


def _truncate(text: str, max_len: int) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) > max_len:
        return text[: max_len - 1] + "…"
    return text
