from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from printshop.db.base import Base, IntPkMixin, utcnow


class Material(IntPkMixin, Base):
    """Stock material (paper, film, toner...) with its on-hand quantity."""
    __tablename__ = "materials"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    min_quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class MaterialMove(IntPkMixin, Base):
    """Audit row written for every change to Material.quantity."""
    __tablename__ = "material_moves"

    material_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    delta: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # survives order deletion
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class MaterialReservation(IntPkMixin, Base):
    """Soft hold on a material quantity; does not change on-hand stock."""
    __tablename__ = "material_reservations"

    material_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True, index=True
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")  # active/released
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ProductMaterial(IntPkMixin, Base):
    """Composition reference: materials consumed per unit of a preset product."""
    __tablename__ = "product_materials"

    preset_category: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    preset_description: Mapped[str] = mapped_column(Text, nullable=False)
    material_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False
    )
    qty_per_item: Mapped[float] = mapped_column(Float, nullable=False)
