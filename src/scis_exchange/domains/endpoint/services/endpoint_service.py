"""
Endpoint service - the endpoint registry
"""

from typing import Optional, List
from datetime import datetime
import logging

from ..models.endpoint import (
    EndpointCreateRequest,
    EndpointUpdateRequest,
    EndpointResponse,
    EndpointValidationResponse,
    EndpointEntity,
    DataTypeInfo,
    DataType,
    DATA_TYPE_DISPLAY_NAMES,
    FHIR_RESOURCE_TYPES,
)
from ..repositories.endpoint_repository import EndpointRepository
from ...hospital.repositories.hospital_repository import HospitalRepository
from ....providers.fhir_provider import FhirEndpointProvider
from ....core.exceptions import NotFoundError, EndpointNotConfiguredError, EndpointInactiveError


logger = logging.getLogger(__name__)


def endpoint_to_response(endpoint: EndpointEntity) -> EndpointResponse:
    data = endpoint.to_dict()
    data["has_api_key"] = bool(data.pop("api_key"))
    data["has_auth_token"] = bool(data.pop("auth_token"))
    return EndpointResponse(**data)


class EndpointService:
    """Service layer for endpoint configuration and resolution"""

    def __init__(
        self,
        repository: EndpointRepository,
        hospital_repository: HospitalRepository,
        fhir_provider: Optional[FhirEndpointProvider] = None
    ):
        self.repository = repository
        self.hospitals = hospital_repository
        self.fhir_provider = fhir_provider

    async def resolve(self, hospital_id: str, data_type: DataType) -> EndpointEntity:
        """
        Active endpoint for a (hospital, data type) pair.

        Raises EndpointNotConfiguredError when none exists and
        EndpointInactiveError when all configured ones are inactive.
        """
        cached = await self.repository.get_cached(hospital_id, data_type)
        if cached:
            return cached

        candidates = await self.repository.list_for_pair(hospital_id, data_type)
        if not candidates:
            raise EndpointNotConfiguredError(
                f"No endpoint configured for {DataType(data_type).value} at hospital {hospital_id}"
            )

        active = [e for e in candidates if e.is_active]
        if not active:
            raise EndpointInactiveError(
                f"Endpoint for {DataType(data_type).value} at hospital {hospital_id} is inactive"
            )

        endpoint = active[0]
        await self.repository.cache(endpoint)
        return endpoint

    async def get_entity(self, endpoint_id: str) -> EndpointEntity:
        endpoint = await self.repository.get(endpoint_id)
        if not endpoint:
            raise NotFoundError(f"Endpoint {endpoint_id} not found")
        return endpoint

    async def get_endpoint(self, endpoint_id: str) -> EndpointResponse:
        return endpoint_to_response(await self.get_entity(endpoint_id))

    async def list_for_hospital(self, hospital_id: str) -> List[EndpointResponse]:
        return [endpoint_to_response(e) for e in await self.repository.list_for_hospital(hospital_id)]

    async def list_all(self, active_only: bool = False) -> List[EndpointResponse]:
        return [endpoint_to_response(e) for e in await self.repository.list_all(active_only=active_only)]

    async def create_endpoint(self, request: EndpointCreateRequest) -> EndpointResponse:
        if not await self.hospitals.get(request.hospital_id):
            raise NotFoundError(f"Hospital {request.hospital_id} not found")

        endpoint = EndpointEntity(**request.model_dump(mode="json"))
        await self.repository.create(endpoint)
        logger.info(f"Configured {endpoint.data_type.value} endpoint {endpoint.id} for hospital {endpoint.hospital_id}")
        return endpoint_to_response(endpoint)

    async def update_endpoint(self, endpoint_id: str, request: EndpointUpdateRequest) -> EndpointResponse:
        endpoint = await self.get_entity(endpoint_id)

        changes = request.model_dump(mode="json", exclude_unset=True)
        if changes.get("endpoint_url") or changes.get("fhir_resource_type"):
            # A new target has not been validated yet
            changes["is_endpoint_valid"] = False
        if changes:
            await self.repository.update_fields(endpoint, changes)

        return endpoint_to_response(await self.get_entity(endpoint_id))

    async def delete_endpoint(self, endpoint_id: str) -> bool:
        endpoint = await self.get_entity(endpoint_id)
        deleted = await self.repository.remove(endpoint)
        logger.info(f"Deleted endpoint {endpoint_id}")
        return deleted

    async def validate_endpoint(self, endpoint_id: str, sample_patient_id: str = "example") -> EndpointValidationResponse:
        """Call the endpoint and record whether it answered with valid FHIR"""
        endpoint = await self.get_entity(endpoint_id)
        result = await self.fhir_provider.validate(endpoint, sample_patient_id)
        now = datetime.utcnow()

        await self.repository.update_fields(endpoint, {
            "is_endpoint_valid": result.success,
            "last_validation_date": now,
            "last_validation_error": result.error,
        })

        return EndpointValidationResponse(
            endpoint_id=endpoint_id,
            is_valid=result.success,
            status_code=result.status_code,
            error=result.error,
            validated_at=now
        )

    @staticmethod
    def available_data_types() -> List[DataTypeInfo]:
        return [DataTypeInfo(value=dt, display_name=DATA_TYPE_DISPLAY_NAMES[dt]) for dt in DataType]

    @staticmethod
    def available_fhir_resource_types() -> List[str]:
        return list(FHIR_RESOURCE_TYPES)
