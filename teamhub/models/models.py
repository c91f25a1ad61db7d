# teamhub/models/models.py
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator

Role = Literal["single", "team", "global"]
NotificationType = Literal["event", "comment", "file", "task", "attendee"]
Priority = Literal["low", "medium", "high"]


# ============================================================================
# IDENTITY / CONNECTION STATE
# ============================================================================

class TokenIdentity(BaseModel):
    user_id: str
    role: Role
    team_id: Optional[str] = None
    global_id: Optional[str] = None
    name: Optional[str] = None


class ConnectionState(BaseModel):
    """
    Per-socket state owned by the connection registrar.

    Filled in by `init` / `init-personal-chat`; the conversation fields only
    change through the conversation router.
    """

    connection_id: str
    user_id: Optional[str] = None
    name: Optional[str] = None
    role: Optional[Role] = None
    team_id: Optional[str] = None
    global_id: Optional[str] = None
    audience_room: Optional[str] = None
    personal_chat: bool = False
    conversation_id: Optional[str] = None
    partner_id: Optional[str] = None

    @property
    def registered(self) -> bool:
        return self.user_id is not None and self.audience_room is not None


# ============================================================================
# CLIENT -> SERVER PAYLOADS
# ============================================================================

class SendMessageRequest(BaseModel):
    text: str = ""
    replyTo: Optional[str] = None
    fileUrl: Optional[str] = None
    fileType: Optional[str] = None
    fileName: Optional[str] = None

    @model_validator(mode="after")
    def require_content(self):
        if not self.text.strip() and not self.fileUrl:
            raise ValueError("Message needs text or a file")
        return self


class EditMessageRequest(BaseModel):
    messageId: str = Field(validation_alias=AliasChoices("id", "messageId"))
    text: str = Field(min_length=1)


class DeleteMessageRequest(BaseModel):
    messageId: str = Field(validation_alias=AliasChoices("id", "messageId"))


class ReactionRequest(BaseModel):
    messageId: str
    emoji: str = Field(min_length=1)
    # Accepted for wire compatibility; the reactor is always the socket's identity.
    userId: Optional[str] = None


class PartnerRequest(BaseModel):
    teammateId: str = Field(validation_alias=AliasChoices("teammateId", "partnerId"))


# ============================================================================
# SERVER -> CLIENT VIEWS
# ============================================================================

class UserRef(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class ReactionView(BaseModel):
    emoji: str
    user: UserRef


class FileView(BaseModel):
    id: str
    fileUrl: str
    filename: Optional[str] = None
    type: Optional[str] = None


class ReplyView(BaseModel):
    id: str
    text: str
    sender: Optional[UserRef] = None


class MessageView(BaseModel):
    id: str
    text: str
    sender: UserRef
    receiver: Optional[UserRef] = None
    conversationId: Optional[str] = None
    replyTo: Optional[ReplyView] = None
    reactions: List[ReactionView] = []
    file: Optional[FileView] = None
    fileUrl: Optional[str] = None
    fileName: Optional[str] = None
    fileType: Optional[str] = None
    isFileMessage: bool = False
    scope: Role
    teamId: Optional[str] = None
    globalId: Optional[str] = None
    isRead: Optional[bool] = None
    readAt: Optional[str] = None
    createdAt: str
    updatedAt: str


# ============================================================================
# NOTIFICATIONS
# ============================================================================

class NotificationRecord(BaseModel):
    id: Optional[str] = None
    type: NotificationType
    text: str
    user: str
    eventId: Optional[str] = None
    taskId: Optional[str] = None
    noteId: Optional[str] = None
    priority: Priority = "medium"
    scope: Role = "single"
    teamId: Optional[str] = None
    globalId: Optional[str] = None
    time: Optional[str] = None
    readBy: List[str] = []


class CreateNotificationRequest(BaseModel):
    type: NotificationType
    text: str = Field(min_length=1)
    eventId: Optional[str] = None
    taskId: Optional[str] = None
    priority: Priority = "medium"
    targetTeam: bool = False
    globalScope: bool = False


DomainEventKind = Literal[
    "event-created",
    "event-updated",
    "event-deleted",
    "note-created",
    "note-updated",
    "note-deleted",
    "attendee-responded",
]


class DomainEventRequest(BaseModel):
    kind: DomainEventKind
    actorName: str
    userId: str
    title: str = ""
    relatedId: Optional[str] = None
    noteType: str = "comment"
    status: Optional[str] = None
