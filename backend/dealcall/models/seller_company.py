from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from dealcall.core.database import Base

class SellerCompany(Base):
    __tablename__ = "seller_companies"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    industry = Column(String, nullable=False)  # SaaS, Fintech, Healthcare, etc.
    geography = Column(String, default="")
    website = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)  # E.164
    
    # Financials (EUR)
    revenue = Column(Float, default=0)
    ebitda = Column(Float, default=0)
    headcount = Column(Integer, default=0)
    estimated_deal_size = Column(Float, default=0)
    likelihood_to_sell = Column(Integer, default=0)  # 0-100
    
    # Pipeline
    deal_stage = Column(String, default="automated_outreach")
    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id"), nullable=True)
    owner_banker_id = Column(UUID(as_uuid=True), ForeignKey("bankers.id"), nullable=False)
    last_contact_date = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    owner_banker = relationship("Banker", backref="companies")
    campaign = relationship("Campaign", backref="companies")
    
    def __repr__(self):
        return f"<SellerCompany(id={self.id}, name={self.name})>"
