import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, BigInteger, Integer, Float, ForeignKey, CheckConstraint, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from .database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY
LinkId = BigInteger().with_variant(Integer, "sqlite")

class Link(Base):
    __tablename__ = "links"

    id: Mapped[int] = mapped_column(LinkId, primary_key=True, autoincrement=True)
    long_url: Mapped[str] = mapped_column(String, nullable=False)
    # Filled from the id inside the insert transaction
    short_code: Mapped[Optional[str]] = mapped_column(String, unique=True, index=True, nullable=True)
    owner_id: Mapped[Optional[str]] = mapped_column(String, index=True, nullable=True)
    visit_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("visit_count >= 0", name="ck_links_visit_count_non_negative"),
    )

class LinkDetails(Base):
    __tablename__ = "link_details"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    link_id: Mapped[int] = mapped_column(LinkId, ForeignKey("links.id"), nullable=False)
    ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 max length
    continent: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    country_code: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    country_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    region_code: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    region_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    country_emoji: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_link_details_link_date', 'link_id', 'date'),
    )
