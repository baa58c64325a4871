"""
ORM models for the academy enrollment portal.

Domain overview
---------------
Program      — a training session athletes can join (the catalog)
User         — a parent (or staff) account, optionally linked to a Telegram user
  └─ Athlete — a child, linked to parents through ParentAthlete
       └─ Enrollment — athlete ↔ program membership with the monthly price
Transaction  — a payment recorded against a parent account
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal.enrollment.models import TrainingSession
from portal.models.base import Base

# ─────────────────────────── Constants ────────────────────────────────────────

class UserRole:
    PARENT = "parent"
    COACH  = "coach"
    ADMIN  = "admin"


class EnrollmentStatus:
    ACTIVE    = "active"
    CANCELLED = "cancelled"


class TransactionStatus:
    SUCCEEDED = "succeeded"
    FAILED    = "failed"
    REFUNDED  = "refunded"
    PENDING   = "pending"


# ─────────────────────────── Models ───────────────────────────────────────────

class Program(Base):
    """A training session in the catalog."""
    __tablename__ = "programs"

    id:               Mapped[str]     = mapped_column(String(50), primary_key=True)
    sport:            Mapped[str]     = mapped_column(String(100))
    level:            Mapped[str]     = mapped_column(String(100))
    gender:           Mapped[str]     = mapped_column(String(10))    # Male | Female | Coed
    min_age:          Mapped[int]     = mapped_column(Integer)
    max_age:          Mapped[int]     = mapped_column(Integer)
    price:            Mapped[Decimal] = mapped_column(Numeric(10, 2))
    capacity:         Mapped[int]     = mapped_column(Integer, default=20)
    registered_count: Mapped[int]     = mapped_column(Integer, default=0)
    status:           Mapped[str]     = mapped_column(String(30), default="Open")
    schedule:         Mapped[str]     = mapped_column(String(255), default="")
    location:         Mapped[str]     = mapped_column(String(255), default="")
    head_coach:       Mapped[str]     = mapped_column(String(255), default="")

    enrollments: Mapped[List["Enrollment"]] = relationship(back_populates="program")

    def to_catalog_entry(self) -> TrainingSession:
        return TrainingSession(
            id=self.id,
            sport=self.sport,
            level=self.level,
            gender=self.gender,
            min_age=self.min_age,
            max_age=self.max_age,
            price=Decimal(self.price),
            capacity=self.capacity,
            registered_count=self.registered_count,
            status=self.status,
            schedule=self.schedule or "",
            location=self.location or "",
            head_coach=self.head_coach or "",
        )


class User(Base):
    """Portal account. Parents are created by the public enrollment flow."""
    __tablename__ = "users"

    id:          Mapped[int]           = mapped_column(Integer, primary_key=True, autoincrement=True)
    email:       Mapped[str]           = mapped_column(String(255), unique=True, index=True)
    first_name:  Mapped[str]           = mapped_column(String(255))
    last_name:   Mapped[str]           = mapped_column(String(255))
    phone:       Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    role:        Mapped[str]           = mapped_column(String(20), default=UserRole.PARENT)
    telegram_id: Mapped[Optional[int]] = mapped_column(BigInteger, unique=True, nullable=True, index=True)
    is_active:   Mapped[bool]          = mapped_column(Boolean, default=True)
    created_at:  Mapped[datetime]      = mapped_column(DateTime, default=func.now())

    athlete_links: Mapped[List["ParentAthlete"]] = relationship(
        back_populates="parent", cascade="all, delete-orphan"
    )
    transactions:  Mapped[List["Transaction"]]   = relationship(
        back_populates="parent", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        if self.last_name and self.last_name != self.first_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


class Athlete(Base):
    __tablename__ = "athletes"

    id:            Mapped[int]      = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name:    Mapped[str]      = mapped_column(String(255))
    last_name:     Mapped[str]      = mapped_column(String(255))
    date_of_birth: Mapped[date]     = mapped_column(Date)
    gender:        Mapped[str]      = mapped_column(String(10), default="Male")
    jersey_size:   Mapped[str]      = mapped_column(String(5), default="M")
    status:        Mapped[str]      = mapped_column(String(20), default="active")
    created_at:    Mapped[datetime] = mapped_column(DateTime, default=func.now())

    parent_links: Mapped[List["ParentAthlete"]] = relationship(
        back_populates="athlete", cascade="all, delete-orphan"
    )
    enrollments:  Mapped[List["Enrollment"]]    = relationship(
        back_populates="athlete", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        if self.last_name and self.last_name != self.first_name:
            return f"{self.first_name} {self.last_name}"
        return self.first_name


class ParentAthlete(Base):
    __tablename__ = "parent_athletes"

    id:           Mapped[int]  = mapped_column(Integer, primary_key=True, autoincrement=True)
    parent_id:    Mapped[int]  = mapped_column(ForeignKey("users.id"))
    athlete_id:   Mapped[int]  = mapped_column(ForeignKey("athletes.id"))
    relationship_label: Mapped[str] = mapped_column("relationship", String(30), default="Parent")
    is_primary:   Mapped[bool] = mapped_column(Boolean, default=True)

    parent:  Mapped["User"]    = relationship(back_populates="athlete_links")
    athlete: Mapped["Athlete"] = relationship(back_populates="parent_links")


class Enrollment(Base):
    __tablename__ = "enrollments"

    id:            Mapped[int]      = mapped_column(Integer, primary_key=True, autoincrement=True)
    athlete_id:    Mapped[int]      = mapped_column(ForeignKey("athletes.id"))
    program_id:    Mapped[str]      = mapped_column(ForeignKey("programs.id"))
    status:        Mapped[str]      = mapped_column(String(20), default=EnrollmentStatus.ACTIVE)
    monthly_price: Mapped[Decimal]  = mapped_column(Numeric(10, 2))
    start_date:    Mapped[date]     = mapped_column(Date, default=date.today)
    created_at:    Mapped[datetime] = mapped_column(DateTime, default=func.now())

    athlete: Mapped["Athlete"] = relationship(back_populates="enrollments")
    program: Mapped["Program"] = relationship(back_populates="enrollments")


class Transaction(Base):
    """A payment attempt against a parent account."""
    __tablename__ = "transactions"

    id:                 Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_number: Mapped[str]                = mapped_column(String(40), unique=True)
    parent_id:          Mapped[int]                = mapped_column(ForeignKey("users.id"))
    description:        Mapped[str]                = mapped_column(String(500))
    amount:             Mapped[Decimal]            = mapped_column(Numeric(10, 2))
    status:             Mapped[str]                = mapped_column(String(20), default=TransactionStatus.PENDING)
    payment_method:     Mapped[Optional[str]]      = mapped_column(String(50), nullable=True)
    receipt_url:        Mapped[Optional[str]]      = mapped_column(String(500), nullable=True)
    created_at:         Mapped[datetime]           = mapped_column(DateTime, default=func.now())
    processed_at:       Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    parent: Mapped["User"] = relationship(back_populates="transactions")
