from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional

from ..models.slot import Slot, SlotStatus

class SlotRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, slot_id: int) -> Optional[Slot]:
        return self.db.query(Slot).filter(Slot.id == slot_id).first()

    def lock_by_id(self, slot_id: int) -> Optional[Slot]:
        """Re-read the slot with a write lock held until the transaction ends."""
        return self.db.query(Slot).filter(
            Slot.id == slot_id
        ).with_for_update().populate_existing().first()

    def find_by_doctor(self, doctor_id: int) -> List[Slot]:
        return self.db.query(Slot).filter(
            Slot.doctor_id == doctor_id
        ).order_by(Slot.start_time.asc()).all()

    def find_open_by_doctor_between(
        self, doctor_id: int, start: datetime, end: datetime
    ) -> List[Slot]:
        return self.db.query(Slot).filter(
            Slot.doctor_id == doctor_id,
            Slot.status == SlotStatus.OPEN,
            Slot.start_time >= start,
            Slot.start_time < end,
        ).order_by(Slot.start_time.asc()).all()

    def add(self, slot: Slot) -> Slot:
        self.db.add(slot)
        self.db.flush()
        return slot

    def delete(self, slot: Slot) -> None:
        self.db.delete(slot)
        self.db.flush()
