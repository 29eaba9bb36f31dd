"""
Opsboard — Database Models
Workspace data (vault, ledger, tasks, products), platform integrations and
saved Ad Library research. Remote Meta entities (campaigns, ad sets, ads) are
NOT stored here; they live in services/aggregation_service.py as transient types.
"""

import uuid
import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy import (
    String, Text, Boolean, Date, DateTime, Numeric, Uuid,
    ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from opsboard.database import Base


def _utcnow() -> datetime:
    """Naive UTC now — matches DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class Platform(str, enum.Enum):
    FACEBOOK = "FACEBOOK"
    GOOGLE = "GOOGLE"
    OPENAI = "OPENAI"


class RecordType(str, enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class RecordStatus(str, enum.Enum):
    PAID = "PAID"
    PENDING = "PENDING"


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ProductStatus(str, enum.Enum):
    MINING = "MINING"
    VALIDATING = "VALIDATING"
    SCALING = "SCALING"
    PAUSED = "PAUSED"


# ══════════════════════════════════════════════════════════════════════
#  USERS: App users for login & access control
# ══════════════════════════════════════════════════════════════════════

class User(Base):
    """App user for login and access control."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), default="user")  # admin, user
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login_at: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_users_role", "role"),
    )


# ══════════════════════════════════════════════════════════════════════
#  VAULT: Service logins shared by the team
# ══════════════════════════════════════════════════════════════════════

class Credential(Base):
    """A stored login for an external service. `password` is Fernet-encrypted."""
    __tablename__ = "credentials"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    service: Mapped[str] = mapped_column(String(255), nullable=False)
    username: Mapped[str] = mapped_column(String(255), nullable=True)
    password: Mapped[str] = mapped_column(Text, nullable=True)
    url: Mapped[str] = mapped_column(String(1024), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_credentials_service", "service"),
    )


# ══════════════════════════════════════════════════════════════════════
#  LEDGER: Income / expense records
# ══════════════════════════════════════════════════════════════════════

class FinancialRecord(Base):
    __tablename__ = "financial_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    description: Mapped[str] = mapped_column(String(512), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # INCOME, EXPENSE
    category: Mapped[str] = mapped_column(String(100), nullable=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=RecordStatus.PENDING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_financial_records_due_date", "due_date"),
        Index("ix_financial_records_type_status", "type", "status"),
    )


# ══════════════════════════════════════════════════════════════════════
#  TASKS: Kanban board
# ══════════════════════════════════════════════════════════════════════

class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.TODO.value)
    priority: Mapped[str] = mapped_column(String(20), default=TaskPriority.MEDIUM.value)
    assignee: Mapped[str] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_tasks_status", "status"),
    )


# ══════════════════════════════════════════════════════════════════════
#  PRODUCTS: Offer pipeline (mining → validating → scaling)
# ══════════════════════════════════════════════════════════════════════

class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(String(100), nullable=True)  # Hotmart, Kiwify, ...
    status: Mapped[str] = mapped_column(String(20), default=ProductStatus.MINING.value)
    drive_link: Mapped[str] = mapped_column(String(1024), nullable=True)
    miro_link: Mapped[str] = mapped_column(String(1024), nullable=True)
    notion_link: Mapped[str] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_products_status", "status"),
    )


# ══════════════════════════════════════════════════════════════════════
#  INTEGRATIONS: Platform credentials and ad accounts
# ══════════════════════════════════════════════════════════════════════

class Integration(Base):
    """
    One row per platform. `api_key` is the (encrypted) access token;
    `account_id` is the legacy single-account field, used only when no
    AdAccount rows exist.
    """
    __tablename__ = "integrations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    api_key: Mapped[str] = mapped_column(Text, nullable=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    ad_accounts: Mapped[list["AdAccount"]] = relationship(
        "AdAccount", back_populates="integration", cascade="all, delete-orphan",
        order_by="AdAccount.created_at",
    )

    __table_args__ = (
        UniqueConstraint("platform", name="uq_integration_platform"),
    )


class AdAccount(Base):
    """An addressable ad account scope under an integration (e.g. act_123)."""
    __tablename__ = "ad_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    integration_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("integrations.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    integration: Mapped["Integration"] = relationship("Integration", back_populates="ad_accounts")

    __table_args__ = (
        UniqueConstraint("integration_id", "account_id", name="uq_ad_account_per_integration"),
        Index("ix_ad_accounts_integration_id", "integration_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  AD LIBRARY: Saved competitor ads
# ══════════════════════════════════════════════════════════════════════

class SavedAd(Base):
    """Snapshot of an Ad Library result. Only `ai_analysis` changes after creation."""
    __tablename__ = "saved_ads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ad_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    page_name: Mapped[str] = mapped_column(String(512), nullable=False)
    page_id: Mapped[str] = mapped_column(String(255), nullable=True)
    ad_text: Mapped[str] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(String(2048), nullable=True)
    video_url: Mapped[str] = mapped_column(String(2048), nullable=True)
    platform: Mapped[str] = mapped_column(String(50), nullable=True)
    country: Mapped[str] = mapped_column(String(50), nullable=True)
    start_date: Mapped[str] = mapped_column(String(50), nullable=True)
    landing_page_url: Mapped[str] = mapped_column(String(2048), nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=True)
    ai_analysis: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    __table_args__ = (
        Index("ix_saved_ads_created_at", "created_at"),
    )
