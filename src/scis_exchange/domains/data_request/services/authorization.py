"""
Role-based access policy for data types
"""

from typing import FrozenSet, Dict

from ...hospital.models.hospital import Role
from ...endpoint.models.endpoint import DataType


_ALL_TYPES: FrozenSet[DataType] = frozenset(DataType)

_STAFF_TYPES: FrozenSet[DataType] = frozenset({
    DataType.PATIENT_DEMOGRAPHICS,
    DataType.ENCOUNTERS,
    DataType.ALLERGIES,
    DataType.IMMUNIZATIONS,
    DataType.VITAL_SIGNS,
    DataType.LAB_RESULTS,
    DataType.DIAGNOSTIC_REPORTS,
    DataType.MEDICAL_HISTORY,
})

ROLE_DATA_ACCESS: Dict[Role, FrozenSet[DataType]] = {
    Role.SYSTEM_MANAGER: _ALL_TYPES,
    Role.HOSPITAL_MANAGER: _ALL_TYPES,
    Role.DOCTOR: _ALL_TYPES,
    Role.STAFF: _STAFF_TYPES,
}


class AuthorizationChecker:
    """Static role to data type policy; same inputs always give the same answer"""

    @staticmethod
    def is_authorized(role: Role, data_type: DataType) -> bool:
        try:
            return DataType(data_type) in ROLE_DATA_ACCESS.get(Role(role), frozenset())
        except ValueError:
            return False

    @staticmethod
    def allowed_data_types(role: Role) -> FrozenSet[DataType]:
        return ROLE_DATA_ACCESS.get(Role(role), frozenset())
