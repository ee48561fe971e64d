from fastapi import APIRouter, Depends, status
from typing import List

from ...api.deps import (
    get_booking_engine, get_current_user, get_patient_user, get_state_machine
)
from ...core.security import UserRole
from ...models.user import User
from ...schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentStatusUpdate
)
from ...services.appointment_state import AppointmentStateMachine
from ...services.booking_service import BookingEngine

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    booking: AppointmentCreate,
    current_user: User = Depends(get_patient_user),
    engine: BookingEngine = Depends(get_booking_engine),
):
    """Request an appointment; it starts out pending."""
    return engine.create_appointment(
        patient_id=current_user.id,
        doctor_id=booking.doctor_id,
        start_time=booking.start_time,
        end_time=booking.end_time,
        slot_id=booking.slot_id,
        notes=booking.notes,
    )

@router.get("", response_model=List[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
):
    if current_user.role == UserRole.DOCTOR:
        return engine.list_for_doctor(current_user.id)
    return engine.list_for_patient(current_user.id)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    engine: BookingEngine = Depends(get_booking_engine),
):
    return engine.get_appointment(appointment_id, current_user.id)

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    update: AppointmentStatusUpdate,
    current_user: User = Depends(get_current_user),
    state_machine: AppointmentStateMachine = Depends(get_state_machine),
):
    """Move an appointment through its lifecycle."""
    return state_machine.transition(appointment_id, current_user.id, update.status, update.notes)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    state_machine: AppointmentStateMachine = Depends(get_state_machine),
):
    return state_machine.cancel(appointment_id, current_user.id)
