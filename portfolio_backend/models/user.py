"""User model definitions."""

from sqlalchemy import Column, Integer, String

from portfolio_backend.database import Base

ADMIN_ROLE = 'admin'


class User(Base):
    """An account that can sign in to the dashboard."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String)  # admin/viewer
