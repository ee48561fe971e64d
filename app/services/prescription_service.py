from sqlalchemy.orm import Session
from pydantic import ValidationError as PydanticValidationError
from typing import Any, Iterable, List, Optional
import logging

from ..core.database import transaction
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.prescription import Prescription, PrescriptionItem
from ..repositories.prescription_repository import PrescriptionRepository
from ..schemas.prescription import PrescriptionUpdate
from .access_guard import AccessGuard
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

def coerce_items(items: Optional[Iterable[Any]]) -> List[PrescriptionItem]:
    """Validate raw item payloads (dicts or PrescriptionItem) into a non-empty list."""
    if items is None:
        raise ValidationError("Prescription items are required")
    try:
        parsed = [
            item if isinstance(item, PrescriptionItem) else PrescriptionItem.model_validate(item)
            for item in items
        ]
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid prescription item: {e.errors()[0]['msg']}") from e
    if not parsed:
        raise ValidationError("A prescription needs at least one item")
    return parsed

class PrescriptionService:
    """Doctor-authored prescriptions attached to an appointment.

    Both participants may read; only the appointment's doctor writes. The
    item list is one unit: an update carrying items replaces the list.
    """

    def __init__(
        self,
        db: Session,
        audit: Optional[AuditSink] = None,
        prescriptions: Optional[PrescriptionRepository] = None,
        guard: Optional[AccessGuard] = None,
    ):
        self.db = db
        self.audit = audit
        self.prescriptions = prescriptions or PrescriptionRepository(db)
        self.guard = guard or AccessGuard(db)

    def _writable(self, appointment_id: int, actor_id: int) -> Appointment:
        appointment = self.guard.authorize_doctor(appointment_id, actor_id)
        if appointment.status == AppointmentStatus.CANCELLED:
            raise ConflictError("Appointment is cancelled")
        return appointment

    def _load(self, prescription_id: int) -> Prescription:
        prescription = self.prescriptions.find_by_id(prescription_id)
        if not prescription:
            raise NotFoundError("Prescription not found")
        return prescription

    def _record(self, actor_id, action, prescription: Prescription):
        if self.audit:
            self.audit.record(actor_id, action, "prescription", prescription.id, {
                "appointment_id": prescription.appointment_id,
                "items": len(prescription.items or []),
            })

    def create_prescription(self, appointment_id: int, actor_id: int,
                            items: Iterable[Any], notes: str = "") -> Prescription:
        self._writable(appointment_id, actor_id)
        parsed = coerce_items(items)

        with transaction(self.db):
            prescription = self.prescriptions.add(Prescription(
                appointment_id=appointment_id,
                created_by_doctor_id=actor_id,
                items=parsed,
                notes=notes or "",
            ))

        logger.info(f"Prescription {prescription.id} created for appointment {appointment_id}")
        self._record(actor_id, "prescription.created", prescription)
        return prescription

    def update_prescription(self, prescription_id: int, actor_id: int,
                            changes: PrescriptionUpdate) -> Prescription:
        prescription = self._load(prescription_id)
        self._writable(prescription.appointment_id, actor_id)

        fields = changes.model_fields_set
        new_items = coerce_items(changes.items) if "items" in fields else None
        if "notes" in fields and changes.notes is None:
            raise ValidationError("Notes cannot be null")

        with transaction(self.db):
            if new_items is not None:
                prescription.items = new_items
            if "notes" in fields:
                prescription.notes = changes.notes

        logger.info(f"Prescription {prescription_id} updated ({', '.join(sorted(fields)) or 'no changes'})")
        self._record(actor_id, "prescription.updated", prescription)
        return prescription

    def delete_prescription(self, prescription_id: int, actor_id: int) -> None:
        prescription = self._load(prescription_id)
        self._writable(prescription.appointment_id, actor_id)

        with transaction(self.db):
            self.prescriptions.delete(prescription)

        logger.info(f"Prescription {prescription_id} deleted by doctor {actor_id}")
        self._record(actor_id, "prescription.deleted", prescription)

    def get_prescription(self, prescription_id: int, actor_id: int) -> Prescription:
        prescription = self._load(prescription_id)
        self.guard.authorize(prescription.appointment_id, actor_id)
        return prescription

    def list_prescriptions(self, appointment_id: int, actor_id: int) -> List[Prescription]:
        self.guard.authorize(appointment_id, actor_id)
        return self.prescriptions.find_by_appointment(appointment_id)
