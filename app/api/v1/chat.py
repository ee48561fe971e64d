from fastapi import APIRouter, Depends, File, UploadFile, status
from typing import List, Optional

from ...api.deps import get_chat_service, get_current_user
from ...models.user import User
from ...schemas.chat import (
    AttachmentResponse, MarkReadResponse, MessageCreate, MessageResponse, UnreadCountResponse
)
from ...services.chat_service import ChatService

router = APIRouter(prefix="/appointments/{appointment_id}/messages", tags=["Chat"])

@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    appointment_id: int,
    message: MessageCreate,
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    return chat.send_message(appointment_id, current_user.id, message.body, message.attachment_url)

@router.get("", response_model=List[MessageResponse])
def list_messages(
    appointment_id: int,
    limit: Optional[int] = None,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    return chat.list_messages(appointment_id, current_user.id, limit, offset)

@router.post("/read", response_model=MarkReadResponse)
def mark_messages_read(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    marked = chat.mark_as_read(appointment_id, current_user.id)
    return MarkReadResponse(appointment_id=appointment_id, marked=marked)

@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    unread = chat.unread_count(appointment_id, current_user.id)
    return UnreadCountResponse(appointment_id=appointment_id, unread=unread)

@router.post("/attachments", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
def upload_attachment(
    appointment_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    url = chat.upload_attachment(appointment_id, current_user.id, file.filename or "attachment", file.file.read())
    return AttachmentResponse(url=url)
