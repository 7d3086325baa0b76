from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import Field as PydanticField
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TZDatetime(TypeDecorator):
    """Custom DateTime type that ensures timezone-aware datetimes."""

    impl = DateTime(timezone=True)

    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            raise ValueError(
                "Naive datetime is not allowed. Please provide a timezone-aware datetime."
            )
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            # SQLite drops the offset, values are always stored in UTC
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(AsyncAttrs, DeclarativeBase):
    """SQLAlchemy declarative base for all ORM models with async support."""

    pass


class RecordType(str, Enum):
    A = "A"


class Address(Base):
    """One observed public IP address. At most one row is flagged current."""

    __tablename__ = "address"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ip: Mapped[str] = mapped_column(String(15), unique=True, index=True)
    current: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(TZDatetime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        TZDatetime(), default=utcnow, onupdate=utcnow
    )


class Record(Base):
    """A DNS host record kept in sync with the current address."""

    __tablename__ = "record"
    __table_args__ = (
        UniqueConstraint("name", "zone_id", "type", name="uq_record_name_zone_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    token: Mapped[str] = mapped_column(String(255))
    zone_id: Mapped[str] = mapped_column(String(64))
    type: Mapped[RecordType] = mapped_column(
        SQLAlchemyEnum(RecordType), default=RecordType.A
    )
    name: Mapped[str] = mapped_column(String(255))
    domain: Mapped[str] = mapped_column(String(255))
    ttl: Mapped[int] = mapped_column(Integer, default=60)
    address_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("address.id", ondelete="SET NULL"), nullable=True
    )
    last_update: Mapped[Optional[datetime]] = mapped_column(
        TZDatetime(), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(TZDatetime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        TZDatetime(), default=utcnow, onupdate=utcnow
    )

    address: Mapped[Optional[Address]] = relationship(lazy="selectin")

    @property
    def fqdn(self) -> str:
        if self.name == "@":
            return self.domain
        return f"{self.name}.{self.domain}"

    def __repr__(self) -> str:
        return f"Record(id={self.id!r}, name={self.name!r}, domain={self.domain!r})"


class RecordHistory(Base):
    """Append-only trail of the values a record resolved to."""

    __tablename__ = "record_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    record_id: Mapped[int] = mapped_column(
        ForeignKey("record.id", ondelete="CASCADE"), index=True
    )
    address_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("address.id", ondelete="SET NULL"), nullable=True
    )
    resolved_ip: Mapped[str] = mapped_column(String(15))
    resolved_at: Mapped[datetime] = mapped_column(TZDatetime(), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(TZDatetime(), default=utcnow)


# Pydantic models for request/response serialization


class AddressPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ip: str
    current: bool
    created_at: datetime
    updated_at: datetime


class RecordBase(BaseModel):
    """Fields accepted when creating or editing a record."""

    token: str = PydanticField(min_length=1)
    zone_id: str = PydanticField(min_length=1)
    type: RecordType = RecordType.A
    name: str = PydanticField(min_length=1)
    domain: str = PydanticField(min_length=1)
    ttl: int = PydanticField(default=60, gt=0)

    @field_validator("token", "zone_id", "name", "domain")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class RecordCreate(RecordBase):
    pass


class RecordUpdate(RecordBase):
    pass


class RecordPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    zone_id: str
    type: RecordType
    name: str
    domain: str
    ttl: int
    address_id: Optional[int] = None
    address: Optional[AddressPublic] = None
    last_update: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class RecordHistoryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    record_id: int
    address_id: Optional[int] = None
    resolved_ip: str
    resolved_at: datetime
