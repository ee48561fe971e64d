from sqlalchemy.orm import Session
from typing import List, Optional

from ..models.prescription import Prescription

class PrescriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, prescription_id: int) -> Optional[Prescription]:
        return self.db.query(Prescription).filter(Prescription.id == prescription_id).first()

    def find_by_appointment(self, appointment_id: int) -> List[Prescription]:
        return self.db.query(Prescription).filter(
            Prescription.appointment_id == appointment_id
        ).order_by(Prescription.id.desc()).all()

    def add(self, prescription: Prescription) -> Prescription:
        self.db.add(prescription)
        self.db.flush()
        return prescription

    def delete(self, prescription: Prescription) -> None:
        self.db.delete(prescription)
        self.db.flush()
