from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid
from dealcall.core.database import Base


class CallOutcome(str, enum.Enum):
    productive = "productive"
    no_answer = "no_answer"
    voicemail = "voicemail"
    scheduled_meeting = "scheduled_meeting"
    not_interested = "not_interested"


class AnalysisStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class Call(Base):
    __tablename__ = "calls"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seller_company_id = Column(UUID(as_uuid=True), ForeignKey("seller_companies.id"), nullable=False)
    banker_id = Column(UUID(as_uuid=True), ForeignKey("bankers.id"), nullable=False)
    
    # Vapi metadata (set once the platform accepted the call)
    external_call_id = Column(String, unique=True, index=True, nullable=True)
    
    # Call details
    call_date = Column(DateTime, default=datetime.utcnow)
    duration = Column(Integer, nullable=False, default=0)  # minutes, 0 until finalized
    finalized_at = Column(DateTime, nullable=True)

    # Last transcript sequence handed out; bumped atomically per message
    message_count = Column(Integer, nullable=False, default=0)

    # AI Analysis
    outcome = Column(String, nullable=True)  # see CallOutcome
    summary = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    analysis_status = Column(String, nullable=False, default=AnalysisStatus.pending.value)
    analysis_error = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    seller_company = relationship("SellerCompany", backref="calls")
    banker = relationship("Banker", backref="calls")
    messages = relationship(
        "Message",
        back_populates="call",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    
    def __repr__(self):
        return f"<Call(id={self.id}, company={self.seller_company_id})>"
