from sqlalchemy import Column, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from app.database import Base


class Message(Base):
    __tablename__ = "messages"

    message_id = Column(Text, primary_key=True)
    conversation_id = Column(Text, ForeignKey("threads.conversation_id"), nullable=False, index=True)
    message_text = Column(Text, nullable=False, default="")
    user_type = Column(Text, nullable=False)  # User, CRM
    display_name = Column(Text)
    created_date = Column(DateTime(timezone=True), nullable=False)

    thread = relationship("Thread", back_populates="messages")
