from sqlalchemy import Column, DateTime, Text
from sqlalchemy.orm import relationship

from app.database import Base


class Thread(Base):
    __tablename__ = "threads"

    conversation_id = Column(Text, primary_key=True)
    state = Column(Text, nullable=False, default="Bot")  # Bot, Queued, Live Agent
    display_name = Column(Text)
    brand_id = Column(Text)
    last_message_text = Column(Text)
    last_updated = Column(DateTime(timezone=True), index=True)

    messages = relationship("Message", back_populates="thread")
