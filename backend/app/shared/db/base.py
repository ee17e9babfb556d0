"""
Declarative base for the automation tables.
Alembic autogenerate reads Base.metadata, so every model must inherit from Base.
"""
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import Column, DateTime, MetaData
from sqlalchemy.sql import func

# Unnamed keys get PostgreSQL's own default names, so autogenerate stays quiet
NAMING_CONVENTION = {
    "pk": "%(table_name)s_pkey",
    "fk": "%(table_name)s_%(column_0_name)s_fkey",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class TimestampMixin:
    """
    created_at set by the database on insert, updated_at on every UPDATE issued through SQLAlchemy.
    """
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        onupdate=func.now()
    )
