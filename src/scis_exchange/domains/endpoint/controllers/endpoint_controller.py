"""
Endpoint controller - HTTP endpoint handlers for the endpoint registry
"""

from typing import List, Optional
from fastapi import APIRouter, HTTPException, Query, Path, Depends
import logging

from ..models.endpoint import (
    EndpointCreateRequest,
    EndpointUpdateRequest,
    EndpointResponse,
    EndpointValidationResponse,
    DataTypeInfo
)
from ..services.endpoint_service import EndpointService
from ....core.dependencies import get_endpoint_service
from ....core.exceptions import SCISError, to_http_exception


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/endpoints", tags=["endpoints"])


@router.get("/data-types", response_model=List[DataTypeInfo])
async def list_data_types() -> List[DataTypeInfo]:
    """Data types an endpoint can serve"""
    return EndpointService.available_data_types()


@router.get("/fhir-resource-types", response_model=List[str])
async def list_fhir_resource_types() -> List[str]:
    """FHIR resource types accepted in endpoint configuration"""
    return EndpointService.available_fhir_resource_types()


@router.post("", response_model=EndpointResponse, status_code=201)
async def create_endpoint(
    request: EndpointCreateRequest,
    service: EndpointService = Depends(get_endpoint_service)
) -> EndpointResponse:
    """
    Configure a FHIR endpoint for a hospital and data type

    Secrets are stored but never returned; responses only report whether
    an API key or auth token is set.
    """
    try:
        return await service.create_endpoint(request)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error creating endpoint for hospital {request.hospital_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=List[EndpointResponse])
async def list_endpoints(
    hospital_id: Optional[str] = Query(None, description="Restrict to one hospital"),
    active_only: bool = Query(default=False, description="Only active endpoints"),
    service: EndpointService = Depends(get_endpoint_service)
) -> List[EndpointResponse]:
    """
    List configured endpoints
    """
    try:
        if hospital_id:
            endpoints = await service.list_for_hospital(hospital_id)
            return [e for e in endpoints if e.is_active or not active_only]
        return await service.list_all(active_only=active_only)

    except Exception as e:
        logger.error(f"Error listing endpoints: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{endpoint_id}", response_model=EndpointResponse)
async def get_endpoint(
    endpoint_id: str = Path(..., description="Endpoint id"),
    service: EndpointService = Depends(get_endpoint_service)
) -> EndpointResponse:
    try:
        return await service.get_endpoint(endpoint_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error fetching endpoint {endpoint_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{endpoint_id}", response_model=EndpointResponse)
async def update_endpoint(
    request: EndpointUpdateRequest,
    endpoint_id: str = Path(..., description="Endpoint id"),
    service: EndpointService = Depends(get_endpoint_service)
) -> EndpointResponse:
    """
    Update an endpoint

    Changing the URL or resource type clears the validation flag.
    """
    try:
        return await service.update_endpoint(endpoint_id, request)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error updating endpoint {endpoint_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.delete("/{endpoint_id}")
async def delete_endpoint(
    endpoint_id: str = Path(..., description="Endpoint id"),
    service: EndpointService = Depends(get_endpoint_service)
):
    try:
        deleted = await service.delete_endpoint(endpoint_id)
        return {"endpoint_id": endpoint_id, "deleted": deleted}

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error deleting endpoint {endpoint_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{endpoint_id}/validate", response_model=EndpointValidationResponse)
async def validate_endpoint(
    endpoint_id: str = Path(..., description="Endpoint id"),
    sample_patient_id: str = Query(default="example", description="Patient id substituted into the URL"),
    service: EndpointService = Depends(get_endpoint_service)
) -> EndpointValidationResponse:
    """
    Validate an endpoint against a sample patient id

    Calls the endpoint with a sample patient id and checks that it answers
    with a FHIR JSON document of the configured resource type.
    """
    try:
        return await service.validate_endpoint(endpoint_id, sample_patient_id)

    except SCISError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Error validating endpoint {endpoint_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
