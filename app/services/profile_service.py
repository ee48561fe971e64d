from sqlalchemy.orm import Session
from typing import FrozenSet, List, Optional, Union
import logging

from ..core.database import transaction
from ..core.exceptions import NotFoundError, ValidationError
from ..core.locks import LocalLockRegistry, LockRegistry
from ..models.profile import DoctorProfile, PatientProfile
from ..models.user import User
from ..repositories.profile_repository import ProfileRepository
from ..repositories.user_repository import UserRepository
from ..schemas.profile import DoctorSummary, ProfileResponse, ProfileUpdate
from .audit_service import AuditSink

logger = logging.getLogger(__name__)

DOCTOR_FIELDS = frozenset({"specialty", "license_number", "bio"})
PATIENT_FIELDS = frozenset({"birthdate", "phone", "address"})

class ProfileService:
    """Doctor directory and the per-role details kept beside each account.

    Role details live in a separate profile row, created the first time
    one of its fields is set.
    """

    def __init__(
        self,
        db: Session,
        locks: Optional[LockRegistry] = None,
        audit: Optional[AuditSink] = None,
        users: Optional[UserRepository] = None,
        profiles: Optional[ProfileRepository] = None,
    ):
        self.db = db
        self.locks = locks or LocalLockRegistry()
        self.audit = audit
        self.users = users or UserRepository(db)
        self.profiles = profiles or ProfileRepository(db)

    @staticmethod
    def _role_fields(user: User) -> FrozenSet[str]:
        if user.is_doctor:
            return DOCTOR_FIELDS
        if user.is_patient:
            return PATIENT_FIELDS
        return frozenset()

    def _role_profile(self, user: User) -> Optional[Union[DoctorProfile, PatientProfile]]:
        if user.is_doctor:
            return self.profiles.find_doctor_profile(user.id)
        if user.is_patient:
            return self.profiles.find_patient_profile(user.id)
        return None

    def _to_response(self, user: User) -> ProfileResponse:
        data = {"user_id": user.id, "email": user.email, "role": user.role, "name": user.name}
        profile = self._role_profile(user)
        if profile is not None:
            data.update({field: getattr(profile, field) for field in self._role_fields(user)})
        return ProfileResponse(**data)

    @staticmethod
    def _summary(doctor: User, profile: Optional[DoctorProfile]) -> DoctorSummary:
        return DoctorSummary(
            id=doctor.id,
            name=doctor.name,
            specialty=profile.specialty if profile else None,
            bio=profile.bio if profile else None,
        )

    def list_doctors(self) -> List[DoctorSummary]:
        doctors = self.users.find_doctors()
        profiles = {
            profile.user_id: profile
            for profile in self.profiles.find_doctor_profiles([d.id for d in doctors])
        }
        return [self._summary(doctor, profiles.get(doctor.id)) for doctor in doctors]

    def get_doctor(self, doctor_id: int) -> DoctorSummary:
        doctor = self.users.find_by_id(doctor_id)
        if not doctor or not doctor.is_doctor or not doctor.is_active:
            raise NotFoundError("Doctor not found")
        return self._summary(doctor, self.profiles.find_doctor_profile(doctor_id))

    def get_profile(self, user_id: int) -> ProfileResponse:
        user = self.users.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return self._to_response(user)

    def update_profile(self, user_id: int, changes: ProfileUpdate) -> ProfileResponse:
        user = self.users.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        fields = set(changes.model_fields_set)
        role_fields = self._role_fields(user)
        rejected = sorted(fields - role_fields - {"name"})
        if rejected:
            raise ValidationError(
                f"Not applicable to a {user.role.value} profile: {', '.join(rejected)}"
            )
        if "name" in fields and changes.name is None:
            raise ValidationError("Name cannot be null")
        if not fields:
            return self._to_response(user)

        with self.locks.hold(f"user:{user_id}"):
            with transaction(self.db):
                if "name" in fields:
                    user.name = changes.name

                if fields & role_fields:
                    profile = self._role_profile(user)
                    if profile is None:
                        model = DoctorProfile if user.is_doctor else PatientProfile
                        profile = self.profiles.add(model(user_id=user_id))
                    for field in fields & role_fields:
                        setattr(profile, field, getattr(changes, field))

        logger.info(f"User {user_id} updated profile fields {sorted(fields)}")
        if self.audit:
            self.audit.record(user_id, "profile.updated", "user", user_id, {"fields": sorted(fields)})
        return self._to_response(user)
