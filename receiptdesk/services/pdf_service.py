from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from receiptdesk.config import settings
from receiptdesk.services.receipt_service import ReceiptData
from receiptdesk.utils.formatters import format_amount

PAYMENT_MODE_LABELS = {
    "card": "Card",
    "upi": "UPI",
    "net_banking": "Net Banking",
    "wallet": "Wallet",
    "phonepe": "PhonePe",
    "cashfree": "Cashfree",
    "razorpay": "Razorpay",
    "qr": "QR Code",
    "manual": "Bank Transfer",
}


def render_receipt_pdf(data: ReceiptData) -> bytes:
    """
    Render a one-page A4 receipt.

    invariant=1 pins the PDF timestamps and document id so the same data
    always yields the same bytes.
    """
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
    c.setTitle(f"Receipt {data.receipt_number}")
    width, height = A4

    c.setFillColor(colors.HexColor("#1e3a8a"))
    c.rect(0, height - 110, width, 110, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 22)
    c.drawCentredString(width / 2, height - 55, settings.STORE_NAME.upper())
    c.setFont("Helvetica", 14)
    c.drawCentredString(width / 2, height - 80, "PAYMENT RECEIPT")

    y = height - 150
    c.setFillColor(colors.black)
    c.setFont("Helvetica", 11)
    c.drawString(50, y, "Receipt Number:")
    c.drawString(320, y, "Date Issued:")
    y -= 18
    c.setFont("Helvetica-Bold", 13)
    c.drawString(50, y, data.receipt_number)
    c.drawString(320, y, data.issued_at.strftime("%d %b %Y"))

    y -= 40
    c.setFont("Helvetica-Bold", 13)
    c.drawString(50, y, "Customer Details")
    y -= 8
    c.line(50, y, width - 50, y)

    rows = [
        ("Full Name", data.customer_name),
        ("Email Address", data.customer_email),
        ("Phone Number", data.customer_phone or "N/A"),
        ("Address", data.customer_address or "N/A"),
    ]
    for label, value in rows:
        y -= 22
        c.setFont("Helvetica", 11)
        c.drawString(50, y, f"{label}:")
        c.setFont("Helvetica-Bold", 11)
        c.drawString(190, y, str(value)[:70])

    y -= 40
    c.setFont("Helvetica-Bold", 13)
    c.drawString(50, y, "Payment Details")
    y -= 8
    c.line(50, y, width - 50, y)

    payment_rows = [
        ("Amount", f"{data.currency} {format_amount(data.amount)}"),
        ("Payment Mode", PAYMENT_MODE_LABELS.get(data.payment_mode, data.payment_mode)),
        ("Status", data.status.upper()),
    ]
    if data.gateway_payment_id:
        payment_rows.append(("Payment ID", data.gateway_payment_id))
    if data.gateway_order_id:
        payment_rows.append(("Order ID", data.gateway_order_id))

    for label, value in payment_rows:
        y -= 22
        c.setFont("Helvetica", 11)
        c.drawString(50, y, f"{label}:")
        c.setFont("Helvetica-Bold", 11)
        c.drawString(190, y, value)

    c.setFont("Helvetica-Oblique", 9)
    c.setFillColor(colors.grey)
    c.drawCentredString(width / 2, 50, "This is a computer generated receipt and does not require a signature.")

    c.showPage()
    c.save()
    return buffer.getvalue()
