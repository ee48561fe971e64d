from fastapi import APIRouter, Depends, Response, status
from typing import List

from ...api.deps import get_current_user, get_prescription_service
from ...models.user import User
from ...schemas.prescription import (
    PrescriptionCreate, PrescriptionResponse, PrescriptionUpdate
)
from ...services.prescription_service import PrescriptionService

router = APIRouter(tags=["Prescriptions"])

@router.post(
    "/appointments/{appointment_id}/prescriptions",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_prescription(
    appointment_id: int,
    data: PrescriptionCreate,
    current_user: User = Depends(get_current_user),
    prescriptions: PrescriptionService = Depends(get_prescription_service),
):
    return prescriptions.create_prescription(appointment_id, current_user.id, data.items, data.notes)

@router.get("/appointments/{appointment_id}/prescriptions", response_model=List[PrescriptionResponse])
def list_prescriptions(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    prescriptions: PrescriptionService = Depends(get_prescription_service),
):
    return prescriptions.list_prescriptions(appointment_id, current_user.id)

@router.get("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
def get_prescription(
    prescription_id: int,
    current_user: User = Depends(get_current_user),
    prescriptions: PrescriptionService = Depends(get_prescription_service),
):
    return prescriptions.get_prescription(prescription_id, current_user.id)

@router.patch("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
def update_prescription(
    prescription_id: int,
    changes: PrescriptionUpdate,
    current_user: User = Depends(get_current_user),
    prescriptions: PrescriptionService = Depends(get_prescription_service),
):
    return prescriptions.update_prescription(prescription_id, current_user.id, changes)

@router.delete("/prescriptions/{prescription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_prescription(
    prescription_id: int,
    current_user: User = Depends(get_current_user),
    prescriptions: PrescriptionService = Depends(get_prescription_service),
):
    prescriptions.delete_prescription(prescription_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
