from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from ..database import Base


class Package(Base):
    """Therapy service package (duration and price of one session)"""
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), default=0)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Package {self.name} {self.duration_minutes}min>"
