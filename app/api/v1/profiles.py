from fastapi import APIRouter, Depends
from typing import List

from ...api.deps import get_current_user, get_profile_service
from ...models.user import User
from ...schemas.profile import DoctorSummary, ProfileResponse, ProfileUpdate
from ...services.profile_service import ProfileService

router = APIRouter(tags=["Directory"])

@router.get("/doctors", response_model=List[DoctorSummary])
def list_doctors(
    _: User = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Active doctors a patient can book with."""
    return profile_service.list_doctors()

@router.get("/doctors/{doctor_id}", response_model=DoctorSummary)
def get_doctor(
    doctor_id: int,
    _: User = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    return profile_service.get_doctor(doctor_id)

@router.get("/profile/me", response_model=ProfileResponse)
def get_my_profile(
    current_user: User = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    return profile_service.get_profile(current_user.id)

@router.patch("/profile/me", response_model=ProfileResponse)
def update_my_profile(
    changes: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    profile_service: ProfileService = Depends(get_profile_service),
):
    """Apply only the fields present in the payload."""
    return profile_service.update_profile(current_user.id, changes)
