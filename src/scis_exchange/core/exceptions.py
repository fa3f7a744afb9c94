"""
Error taxonomy shared by services and controllers
"""

from fastapi import HTTPException


class SCISError(Exception):
    """Base class for domain errors surfaced to callers"""
    status_code = 500


class NotFoundError(SCISError):
    """Patient, user, hospital, endpoint or request is missing"""
    status_code = 404


class EndpointNotConfiguredError(NotFoundError):
    """No endpoint exists for a (hospital, data type) pair"""


class EndpointInactiveError(NotFoundError):
    """Endpoints exist for a (hospital, data type) pair but none is active"""


class AuthorizationError(SCISError):
    """Caller's role or affiliation does not permit the operation"""
    status_code = 403


class ValidationFailure(SCISError):
    """Malformed input or an operation invalid for the current state"""
    status_code = 422


class UpstreamFailure(SCISError):
    """
    External FHIR endpoint was unreachable, timed out, answered non-2xx
    or returned a malformed body. Recorded on the data request, never
    propagated to API callers.
    """
    status_code = 502

    def __init__(self, message: str, upstream_status: int = None):
        super().__init__(message)
        self.upstream_status = upstream_status


def to_http_exception(error: SCISError) -> HTTPException:
    """Map a domain error onto the matching HTTP error"""
    return HTTPException(status_code=error.status_code, detail=str(error))
