from sqlalchemy.orm import Session
from typing import List, Optional, Sequence, Union

from ..models.profile import DoctorProfile, PatientProfile

class ProfileRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_doctor_profile(self, user_id: int) -> Optional[DoctorProfile]:
        return self.db.query(DoctorProfile).filter(DoctorProfile.user_id == user_id).first()

    def find_patient_profile(self, user_id: int) -> Optional[PatientProfile]:
        return self.db.query(PatientProfile).filter(PatientProfile.user_id == user_id).first()

    def find_doctor_profiles(self, user_ids: Sequence[int]) -> List[DoctorProfile]:
        if not user_ids:
            return []
        return self.db.query(DoctorProfile).filter(DoctorProfile.user_id.in_(user_ids)).all()

    def add(self, profile: Union[DoctorProfile, PatientProfile]) -> Union[DoctorProfile, PatientProfile]:
        self.db.add(profile)
        self.db.flush()
        return profile
