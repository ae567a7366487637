from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.seedtrace.models import Base


class Crop(Base):
    __tablename__ = "crops"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    varieties: Mapped[list["Variety"]] = relationship(
        "Variety",
        back_populates="crop",
        cascade="all, delete-orphan",
        order_by="Variety.code",
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "varieties": [v.to_dict() for v in self.varieties],
        }


class Variety(Base):
    """A market code sold under a crop, e.g. Maize / "GOLD-1144 ANKUSH"."""

    __tablename__ = "varieties"
    __table_args__ = (UniqueConstraint("crop_id", "code", name="uq_varieties_crop_code"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    crop_id: Mapped[int] = mapped_column(ForeignKey("crops.id", ondelete="CASCADE"), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    crop: Mapped[Crop] = relationship("Crop", back_populates="varieties")

    def to_dict(self) -> dict:
        return {"id": self.id, "crop_id": self.crop_id, "code": self.code}


class VarietyUrl(Base):
    """Information page shown on the public tracking page for a crop + variety."""

    __tablename__ = "variety_urls"
    __table_args__ = (UniqueConstraint("crop_id", "variety_id", name="uq_variety_urls_crop_variety"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    crop_id: Mapped[int] = mapped_column(ForeignKey("crops.id", ondelete="CASCADE"), nullable=False)
    variety_id: Mapped[int] = mapped_column(ForeignKey("varieties.id", ondelete="CASCADE"), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    crop: Mapped[Crop] = relationship("Crop", lazy="selectin")
    variety: Mapped[Variety] = relationship("Variety", lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "crop_id": self.crop_id,
            "variety_id": self.variety_id,
            "crop_name": self.crop.name if self.crop else None,
            "variety_code": self.variety.code if self.variety else None,
            "url": self.url,
            "description": self.description,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
