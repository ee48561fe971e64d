from fastapi import APIRouter, Depends, status
from typing import List

from ...api.deps import get_current_user, get_video_service
from ...models.user import User
from ...schemas.video import SignalingInfo, VideoSessionResponse
from ...services.video_service import VideoService

router = APIRouter(tags=["Video"])

@router.post(
    "/appointments/{appointment_id}/video-sessions",
    response_model=VideoSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_video_session(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    video: VideoService = Depends(get_video_service),
):
    return video.create_session(appointment_id, current_user.id)

@router.get("/appointments/{appointment_id}/video-sessions", response_model=List[VideoSessionResponse])
def list_video_sessions(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    video: VideoService = Depends(get_video_service),
):
    return video.list_sessions(appointment_id, current_user.id)

@router.get("/video-sessions/{session_id}", response_model=VideoSessionResponse)
def get_video_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    video: VideoService = Depends(get_video_service),
):
    return video.get_session(session_id, current_user.id)

@router.post("/video-sessions/{session_id}/start", response_model=VideoSessionResponse)
def start_video_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    video: VideoService = Depends(get_video_service),
):
    return video.start_session(session_id, current_user.id)

@router.post("/video-sessions/{session_id}/end", response_model=VideoSessionResponse)
def end_video_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    video: VideoService = Depends(get_video_service),
):
    return video.end_session(session_id, current_user.id)

@router.get("/video-sessions/{session_id}/signaling", response_model=SignalingInfo)
def get_signaling_info(
    session_id: int,
    current_user: User = Depends(get_current_user),
    video: VideoService = Depends(get_video_service),
):
    return video.signaling_info(session_id, current_user.id)
