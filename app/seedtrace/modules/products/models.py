from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.seedtrace.models import Base, User


# Columns holding decimal values; serialized as strings in JSON.
DECIMAL_COLUMNS = (
    "mrp",
    "unit_sale_price",
    "no_of_pkts",
    "total_pkts",
    "remaining_quantity",
    "normal_germination",
    "ger_ave",
    "got_percent",
    "got_ave",
)

# Free-text label columns (dates are kept as display strings, never parsed).
TEXT_COLUMNS = (
    "company",
    "brand",
    "product",
    "description",
    "crop_name",
    "label_number",
    "net_qty",
    "pack_size",
    "lot_batch",
    "lot_no",
    "stack_no",
    "mfg_date",
    "expiry_date",
    "date_of_test",
    "customer_care",
    "email",
    "company_address",
    "marketed_by",
    "location",
    "from_location",
    "to_location",
    "marketing_code",
    "unit_of_measure_code",
    "market_code",
    "prod_code",
    "stage_code",
    "gb",
)

# Column lengths enforced by validate_product_payload before insert.
TEXT_LIMITS = {
    "company": 255,
    "brand": 255,
    "product": 255,
    "crop_name": 128,
    "label_number": 64,
    "net_qty": 64,
    "pack_size": 64,
    "lot_batch": 128,
    "lot_no": 128,
    "stack_no": 128,
    "mfg_date": 64,
    "expiry_date": 64,
    "date_of_test": 64,
    "customer_care": 128,
    "email": 320,
    "marketed_by": 255,
    "location": 255,
    "from_location": 255,
    "to_location": 255,
    "marketing_code": 64,
    "unit_of_measure_code": 64,
    "market_code": 64,
    "prod_code": 64,
    "stage_code": 64,
    "gb": 64,
}


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("idx_products_status", "status"),
        Index("idx_products_submitted_by", "submitted_by_user_id"),
        Index("idx_products_submission_date", "submission_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    unique_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "GGS-2025-123456"

    # Identity
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    brand: Mapped[str] = mapped_column(String(255), nullable=False)
    product: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    crop_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    label_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Pricing / packaging
    mrp: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    unit_sale_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    net_qty: Mapped[str | None] = mapped_column(String(64), nullable=True)
    pack_size: Mapped[str | None] = mapped_column(String(64), nullable=True)
    no_of_pkts: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    total_pkts: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    remaining_quantity: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Batch / lot
    lot_batch: Mapped[str | None] = mapped_column(String(128), nullable=True)
    lot_no: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stack_no: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Label dates (display strings as printed on the label)
    mfg_date: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expiry_date: Mapped[str | None] = mapped_column(String(64), nullable=True)
    date_of_test: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Contact / marketing
    customer_care: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    company_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    marketed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Movement
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    from_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    to_location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Classification codes
    marketing_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    unit_of_measure_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    market_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    prod_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    stage_code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Seed test results
    normal_germination: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    ger_ave: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    got_percent: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    got_ave: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    gb: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Brochure
    brochure_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    brochure_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Review workflow
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, approved, rejected
    submission_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    approval_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    submitted_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_by: Mapped[User | None] = relationship("User", foreign_keys=[submitted_by_user_id], lazy="selectin")
    approved_by: Mapped[User | None] = relationship("User", foreign_keys=[approved_by_user_id], lazy="selectin")

    def to_dict(self) -> dict:
        d: dict = {"id": self.id, "unique_id": self.unique_id}
        for col in TEXT_COLUMNS:
            d[col] = getattr(self, col)
        for col in DECIMAL_COLUMNS:
            v = getattr(self, col)
            d[col] = str(v) if v is not None else None
        d.update(
            {
                "brochure_url": self.brochure_url,
                "brochure_filename": self.brochure_filename,
                "status": self.status,
                "submission_date": self.submission_date.isoformat() if self.submission_date else None,
                "approval_date": self.approval_date.isoformat() if self.approval_date else None,
                "submitted_by": self.submitted_by.email if self.submitted_by else None,
                "approved_by": self.approved_by.email if self.approved_by else None,
                "rejection_reason": self.rejection_reason,
            }
        )
        return d
