"""
Excel export of product records.

One worksheet, one row per product. The "QR Code" column carries a PNG of the
public tracking URL anchored over the cell; the "Tracking URL" column is the same
URL as a hyperlink. The header row is frozen.
"""
from __future__ import annotations

import io
import logging
import re
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

import qrcode
from openpyxl import Workbook
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.seedtrace.modules.products.models import Product
from app.seedtrace.modules.products.service import tracking_url

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_BLUE = "366092"
_LINK_BLUE = "0066CC"
_WHITE = "FFFFFF"

QR_COLUMN = "QR Code"
TRACKING_COLUMN = "Tracking URL"
QR_IMAGE_PX = 80
QR_ROW_HEIGHT = 62  # points; fits an 80px image

# (header, width, value getter)
EXPORT_COLUMNS: tuple[tuple[str, float, Any], ...] = (
    ("Unique ID", 18, lambda p: p.unique_id),
    ("Product Name", 25, lambda p: p.product),
    ("Brand", 20, lambda p: p.brand),
    ("Company", 25, lambda p: p.company),
    ("Description", 40, lambda p: p.description),
    ("Crop Name", 15, lambda p: p.crop_name),
    ("MRP (₹)", 12, lambda p: p.mrp),
    ("Unit Sale Price (₹)", 12, lambda p: p.unit_sale_price),
    ("Net Quantity", 15, lambda p: p.net_qty),
    ("Pack Size", 12, lambda p: p.pack_size),
    ("No. of Packets", 12, lambda p: p.no_of_pkts),
    ("Total Packets", 12, lambda p: p.total_pkts),
    ("Lot/Batch", 15, lambda p: p.lot_batch),
    ("Lot No", 15, lambda p: p.lot_no),
    ("Manufacturing Date", 18, lambda p: p.mfg_date),
    ("Expiry Date", 15, lambda p: p.expiry_date),
    ("Date of Test", 15, lambda p: p.date_of_test),
    ("Customer Care", 20, lambda p: p.customer_care),
    ("Email", 25, lambda p: p.email),
    ("Company Address", 35, lambda p: p.company_address),
    ("Marketed By", 25, lambda p: p.marketed_by),
    ("Brochure URL", 30, lambda p: p.brochure_url),
    ("Brochure Filename", 25, lambda p: p.brochure_filename),
    ("From", 15, lambda p: p.from_location),
    ("To", 15, lambda p: p.to_location),
    ("Market Code", 15, lambda p: p.market_code),
    ("Product Code", 15, lambda p: p.prod_code),
    ("GB", 12, lambda p: p.gb),
    ("Status", 12, lambda p: p.status),
    ("Submission Date", 15, lambda p: _display_date(p.submission_date)),
    ("Approval Date", 15, lambda p: _display_date(p.approval_date)),
    ("Rejection Reason", 30, lambda p: p.rejection_reason),
    (QR_COLUMN, 14, lambda p: None),
    (TRACKING_COLUMN, 40, lambda p: None),
)


def _display_date(v: datetime | None) -> str | None:
    return v.strftime("%d/%m/%Y") if v else None


def _thin_border() -> Border:
    thin = Side(style="thin")
    return Border(left=thin, right=thin, top=thin, bottom=thin)


def qr_png_bytes(data: str) -> bytes:
    qr = qrcode.QRCode(box_size=6, border=2)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def export_filename(company_name: str, today: date | None = None) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", company_name.lower()).strip("-") or "products"
    return f"{slug}-products-{(today or date.today()).isoformat()}.xlsx"


def build_products_workbook(products: Iterable[Product], base_url: str) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Products"

    headers = [h for h, _, _ in EXPORT_COLUMNS]
    qr_col = headers.index(QR_COLUMN) + 1
    url_col = headers.index(TRACKING_COLUMN) + 1
    border = _thin_border()

    ws.append(headers)
    ws.row_dimensions[1].height = 34
    for col_idx, (_, width, _) in enumerate(EXPORT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = Font(bold=True, color=_WHITE)
        cell.fill = PatternFill(start_color=_HEADER_BLUE, end_color=_HEADER_BLUE, fill_type="solid")
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = border
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    count = 0
    for row_idx, product in enumerate(products, start=2):
        count += 1
        url = tracking_url(base_url, product.unique_id)
        for col_idx, (_, _, getter) in enumerate(EXPORT_COLUMNS, start=1):
            cell = ws.cell(row=row_idx, column=col_idx, value=getter(product))
            cell.border = border
            cell.alignment = Alignment(vertical="center", wrap_text=True)

        link = ws.cell(row=row_idx, column=url_col, value=url)
        link.hyperlink = url
        link.font = Font(color=_LINK_BLUE, underline="single")

        try:
            image = XLImage(io.BytesIO(qr_png_bytes(url)))
            image.width = QR_IMAGE_PX
            image.height = QR_IMAGE_PX
            ws.add_image(image, f"{get_column_letter(qr_col)}{row_idx}")
            ws.row_dimensions[row_idx].height = QR_ROW_HEIGHT
        except Exception as e:
            # Row keeps its data; only the QR cell degrades to a marker.
            logger.warning("QR code generation failed for %s: %s", product.unique_id, e)
            ws.cell(row=row_idx, column=qr_col, value="QR Code Error")

    ws.freeze_panes = "A2"

    out = io.BytesIO()
    wb.save(out)
    logger.info("Built product export workbook: %d rows", count)
    return out.getvalue()
