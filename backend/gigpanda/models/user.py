from sqlalchemy import Column, Integer, String, DateTime, Text, Float, JSON

from ..db.database import Base, utcnow

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)  # client, freelancer
    name = Column(String(100), nullable=False)
    last_login = Column(DateTime(timezone=True), default=utcnow)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    # profile
    bio = Column(Text, default="")
    country = Column(String(100), default="")
    picture_url = Column(String(500), default="")
    languages = Column(JSON, default=list)
    skills = Column(JSON, default=list)
    education = Column(JSON, default=list)
    certifications = Column(JSON, default=list)
    company_name = Column(String(200), default="")
    company_info = Column(Text, default="")
    company_link = Column(String(500), default="")
    past_projects = Column(JSON, default=list)

    # freelancer stats
    total_earnings = Column(Float, nullable=False, default=0)
    active_projects = Column(Integer, nullable=False, default=0)
    total_orders = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
