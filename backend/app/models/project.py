"""
Project database model.

A housing scheme whose plots are sold. Part of the inventory store; the
ledger engine reads the id to scope rules, entries and reports.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(30), unique=True, nullable=True)
    city = Column(String(100), nullable=True)
    total_area_marla = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Project(id={self.id}, name='{self.name}')>"
