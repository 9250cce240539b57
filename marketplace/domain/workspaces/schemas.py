"""Workspace domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel

from ..milestones.schemas import MilestoneResponse

# Shared partition lists milestones in the same shape as the milestone endpoints
MilestoneSummary = MilestoneResponse


class MessageCreate(BaseModel):
    content: str
    messageType: str = "text"
    attachments: list[str] = []


class NoteCreate(BaseModel):
    content: str


class FileCreate(BaseModel):
    filename: str
    fileUrl: str
    fileType: Optional[str] = None
    fileSize: Optional[int] = None
    description: Optional[str] = None
    private: bool = False


class CallCreate(BaseModel):
    title: str
    scheduledTime: datetime
    description: Optional[str] = None
    roomUrl: Optional[str] = None
    durationMinutes: int = 30


class MessageView(BaseModel):
    messageId: str
    senderId: int
    senderRole: str
    content: str
    messageType: str
    attachments: list[str] = []
    readBy: list[int] = []
    timestamp: datetime

    @classmethod
    def from_model(cls, message) -> "MessageView":
        return cls(
            messageId=message.message_id,
            senderId=message.sender_id,
            senderRole=message.sender_role,
            content=message.content,
            messageType=message.message_type or "text",
            attachments=list(message.attachments or []),
            readBy=list(message.read_by or []),
            timestamp=message.created_at,
        )


class FileView(BaseModel):
    fileId: str
    filename: str
    fileUrl: str
    fileType: Optional[str] = None
    fileSize: Optional[int] = None
    description: Optional[str] = None
    uploadedBy: int
    uploaderRole: str
    uploadedAt: datetime

    @classmethod
    def from_model(cls, file) -> "FileView":
        return cls(
            fileId=file.file_id,
            filename=file.filename,
            fileUrl=file.file_url,
            fileType=file.file_type,
            fileSize=file.file_size,
            description=file.description,
            uploadedBy=file.uploaded_by,
            uploaderRole=file.uploader_role,
            uploadedAt=file.uploaded_at,
        )


class NoteView(BaseModel):
    noteId: str
    content: str
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_model(cls, note) -> "NoteView":
        return cls(
            noteId=note.note_id,
            content=note.content,
            createdAt=note.created_at,
            updatedAt=note.updated_at,
        )


class CallView(BaseModel):
    callId: str
    title: str
    description: Optional[str] = None
    roomUrl: Optional[str] = None
    scheduledTime: datetime
    durationMinutes: int
    status: str

    @classmethod
    def from_model(cls, call) -> "CallView":
        return cls(
            callId=call.call_id,
            title=call.title,
            description=call.description,
            roomUrl=call.room_url,
            scheduledTime=call.scheduled_time,
            durationMinutes=call.duration_minutes or 30,
            status=call.status or "scheduled",
        )


class SharedPartition(BaseModel):
    title: str
    description: Optional[str] = None
    status: str
    currentPhase: int
    overallProgress: int
    startDate: Optional[datetime] = None
    estimatedEndDate: Optional[datetime] = None
    totalBudget: float
    currency: Optional[str] = None
    serviceType: Optional[str] = None
    lastActivity: Optional[datetime] = None
    unreadMessages: dict[str, int]
    messages: list[MessageView] = []
    files: list[FileView] = []
    milestones: list[MilestoneSummary] = []
    calls: list[CallView] = []


class ClientPrivatePartition(BaseModel):
    notes: list[NoteView] = []
    files: list[FileView] = []
    budgetTracking: dict


class FreelancerPrivatePartition(BaseModel):
    notes: list[NoteView] = []
    files: list[FileView] = []
    earningsTracking: dict


class RoleView(BaseModel):
    workspaceId: str
    contractId: Optional[str] = None
    projectId: Optional[str] = None
    role: str
    participants: dict[str, int]
    shared: SharedPartition
    private: Union[ClientPrivatePartition, FreelancerPrivatePartition]
    permissions: list[str]
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class WorkspaceSummary(BaseModel):
    """Row in the caller's workspace list"""

    workspaceId: str
    contractId: Optional[str] = None
    title: str
    status: str
    role: str
    overallProgress: int
    currentPhase: int
    totalBudget: float
    lastActivity: Optional[datetime] = None
    unreadMessages: int
    hasPrivateData: bool
    createdAt: Optional[datetime] = None
