"""Corporate internship request model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from superintern.storage.models import Base


class CompanyRequest(Base):
    """A company asking the program for interns."""
    __tablename__ = "company_requirements"

    id = Column(Integer, primary_key=True)
    company_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    positions = Column(Integer, nullable=False)
    requirements = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<CompanyRequest(company={self.company_name}, positions={self.positions})>"
