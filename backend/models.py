from sqlalchemy import Boolean, CHAR, Column, DateTime, DECIMAL, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from database import Base
import enum
import uuid
from datetime import datetime, timezone


class Category(str, enum.Enum):
    FOOD = "FOOD"
    TRAVEL = "TRAVEL"
    RENT = "RENT"
    UTILITIES = "UTILITIES"
    OTHER = "OTHER"


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(150), unique=True, nullable=False, index=True)
    password_hash = Column(String(60), nullable=False)   # bcrypt output, never returned
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    expenses = relationship("Expense", back_populates="owner", passive_deletes=True)


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    category = Column(Enum(Category, name="expense_category"), nullable=False)
    amount = Column(DECIMAL(10, 2), nullable=False)   # Never use float for money
    quantity = Column(Integer, nullable=False, default=1)
    is_recurring = Column(Boolean, nullable=False, default=False)
    tax_percent = Column(DECIMAL(5, 2), nullable=False, default=0)
    discount = Column(DECIMAL(5, 2), nullable=False, default=0)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    user_id = Column(CHAR(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="expenses")
