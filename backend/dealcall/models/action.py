from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from dealcall.core.database import Base


class Action(Base):
    __tablename__ = "actions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_company_id = Column(UUID(as_uuid=True), ForeignKey("seller_companies.id"), nullable=False)

    action_type = Column(String, nullable=False)  # call, email
    scheduled_for = Column(DateTime, nullable=False)
    status = Column(String, default="pending")  # pending, completed

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    seller_company = relationship("SellerCompany", backref="actions")

    def __repr__(self):
        return f"<Action(id={self.id}, type={self.action_type}, status={self.status})>"
