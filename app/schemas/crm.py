from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.services.records import MessageRecord, ThreadRecord


class ConversationRequest(BaseModel):
    conversationId: str = Field(min_length=1)


class SendMessageRequest(BaseModel):
    conversationId: str = Field(min_length=1)
    message: str = Field(min_length=1)


class OperatorActionResponse(BaseModel):
    success: bool
    conversationId: str
    action: str
    old_state: Optional[str] = None
    new_state: Optional[str] = None
    message: Optional[str] = None


class ThreadItem(BaseModel):
    conversationId: str
    state: Optional[str] = None
    displayName: Optional[str] = None
    brandId: Optional[str] = None
    lastMessageText: Optional[str] = None
    lastUpdated: Optional[datetime] = None

    @classmethod
    def from_record(cls, thread: ThreadRecord) -> "ThreadItem":
        return cls(
            conversationId=thread.conversation_id,
            state=thread.state,
            displayName=thread.display_name,
            brandId=thread.brand_id,
            lastMessageText=thread.last_message_text,
            lastUpdated=thread.last_updated,
        )


class ThreadListResponse(BaseModel):
    threads: list[ThreadItem]


class MessageItem(BaseModel):
    messageId: str
    conversationId: str
    messageText: str
    userType: str
    displayName: Optional[str] = None
    createdDate: Optional[datetime] = None

    @classmethod
    def from_record(cls, message: MessageRecord) -> "MessageItem":
        return cls(
            messageId=message.message_id,
            conversationId=message.conversation_id,
            messageText=message.message_text,
            userType=message.user_type,
            displayName=message.display_name,
            createdDate=message.created_date,
        )


class MessageListResponse(BaseModel):
    messages: list[MessageItem]
