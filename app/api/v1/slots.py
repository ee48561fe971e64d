from fastapi import APIRouter, Depends, Response, status
from datetime import date
from typing import List

from ...api.deps import get_current_user, get_doctor_user, get_slot_service
from ...models.user import User
from ...schemas.slot import SlotCreate, SlotResponse, SlotUpdate
from ...services.slot_service import SlotService

router = APIRouter(prefix="/slots", tags=["Availability"])

@router.post("", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    slot_data: SlotCreate,
    current_user: User = Depends(get_doctor_user),
    slot_service: SlotService = Depends(get_slot_service),
):
    """Publish an availability window for the current doctor."""
    return slot_service.create_slot(current_user.id, slot_data.start_time, slot_data.end_time)

@router.get("/mine", response_model=List[SlotResponse])
def list_my_slots(
    current_user: User = Depends(get_doctor_user),
    slot_service: SlotService = Depends(get_slot_service),
):
    return slot_service.list_doctor_slots(current_user.id)

@router.get("/doctors/{doctor_id}/available", response_model=List[SlotResponse])
def list_available_slots(
    doctor_id: int,
    day: date,
    _: User = Depends(get_current_user),
    slot_service: SlotService = Depends(get_slot_service),
):
    """Bookable slots of a doctor on one day."""
    return slot_service.list_available_slots(doctor_id, day)

@router.get("/{slot_id}", response_model=SlotResponse)
def get_slot(
    slot_id: int,
    _: User = Depends(get_current_user),
    slot_service: SlotService = Depends(get_slot_service),
):
    return slot_service.get_slot(slot_id)

@router.patch("/{slot_id}", response_model=SlotResponse)
def update_slot(
    slot_id: int,
    changes: SlotUpdate,
    current_user: User = Depends(get_current_user),
    slot_service: SlotService = Depends(get_slot_service),
):
    return slot_service.update_slot(slot_id, current_user.id, changes)

@router.delete("/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slot(
    slot_id: int,
    current_user: User = Depends(get_current_user),
    slot_service: SlotService = Depends(get_slot_service),
):
    slot_service.delete_slot(slot_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
