from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
import uuid
from dealcall.core.database import Base


class MessageRole(str, enum.Enum):
    assistant = "assistant"
    user = "user"
    system = "system"


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("call_id", "sequence", name="uq_messages_call_sequence"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    call_id = Column(
        UUID(as_uuid=True),
        ForeignKey("calls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role = Column(String, nullable=False)  # assistant, user, system
    transcript = Column(Text, nullable=False)

    # Timestamp comes from the event source; sequence breaks ties in insert order
    timestamp = Column(DateTime, nullable=False)
    sequence = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    call = relationship("Call", back_populates="messages")

    def __repr__(self):
        return f"<Message(id={self.id}, call={self.call_id}, role={self.role})>"
