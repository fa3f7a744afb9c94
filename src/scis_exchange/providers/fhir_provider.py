"""
FHIR Endpoint Provider

Calls a hospital's configured FHIR endpoint for one patient and reports
the outcome as a FhirFetchResult. Transport problems, timeouts, non-2xx
answers and unusable bodies all come back as failed results; nothing
raises past fetch() or validate().
"""

import asyncio
import time
import logging
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass
from urllib.parse import quote

import aiohttp
import orjson

from .base_provider import BaseProvider, ProviderConfig
from ..core.config import HTTPConfig, get_http_config
from ..core.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)

PATIENT_ID_PLACEHOLDER = "{patientId}"
FHIR_JSON = "application/fhir+json"


@dataclass
class FhirProviderConfig(ProviderConfig):
    """Configuration for the outbound FHIR client"""
    connect_timeout_seconds: int = 10
    max_pool_size: int = 100
    max_per_host: int = 30
    ttl_dns_cache: int = 300
    user_agent: str = "SCIS-Exchange/1.0"

    def __post_init__(self):
        super().__post_init__()
        if self.connect_timeout_seconds <= 0:
            raise ValueError("connect_timeout_seconds must be positive")

    @classmethod
    def from_http_config(cls, http: Optional[HTTPConfig] = None) -> "FhirProviderConfig":
        http = http or get_http_config()
        return cls(
            timeout_seconds=http.total_timeout,
            connect_timeout_seconds=http.connect_timeout,
            max_pool_size=http.max_pool_size,
            max_per_host=http.max_per_host,
            ttl_dns_cache=http.ttl_dns_cache,
            user_agent=http.user_agent
        )


@dataclass
class FhirFetchResult:
    """Outcome of one call to a FHIR endpoint"""
    success: bool
    status_code: Optional[int] = None
    body: Optional[str] = None
    elapsed_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'success': self.success,
            'status_code': self.status_code,
            'elapsed_ms': self.elapsed_ms,
        }
        if self.error:
            result['error'] = self.error
        return result


def is_valid_fhir_document(document: Any, expected_resource_type: Optional[str]) -> bool:
    """
    Structural FHIR check used when validating an endpoint.

    A Bundle needs an "entry" array, which may be empty only for searchset
    bundles. Any other resource must match the expected resourceType and
    carry an id.
    """
    if not isinstance(document, dict):
        return False

    resource_type = document.get("resourceType")
    if not isinstance(resource_type, str) or not resource_type.strip():
        return False

    if resource_type.lower() == "bundle":
        entries = document.get("entry")
        if not isinstance(entries, list):
            return False
        if str(document.get("type", "")).lower() == "searchset":
            return True
        return len(entries) > 0

    if expected_resource_type and resource_type.lower() != expected_resource_type.lower():
        return False

    return "id" in document


class FhirEndpointProvider(BaseProvider):
    """
    Outbound FHIR client over one shared aiohttp session
    """

    def __init__(self, config: FhirProviderConfig = None, session: Optional[aiohttp.ClientSession] = None):
        super().__init__(config or FhirProviderConfig.from_http_config())
        self.config: FhirProviderConfig = self.config
        self._session = session
        self._owns_session = session is None

    async def initialize(self) -> None:
        """Create the pooled HTTP session unless one was injected"""
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=self.config.max_pool_size,
                limit_per_host=self.config.max_per_host,
                ttl_dns_cache=self.config.ttl_dns_cache
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout(),
                headers={"User-Agent": self.config.user_agent}
            )
            self._owns_session = True

        self._initialized = True
        logger.info("FHIR endpoint provider initialized")

    async def cleanup(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
        await super().cleanup()

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.config.timeout_seconds,
            connect=self.config.connect_timeout_seconds
        )

    def build_request(self, endpoint, patient_external_id: str) -> Dict[str, Any]:
        """
        Build method, URL, query, headers and body for a call.

        {patientId} in the URL and in parameter defaults is replaced with the
        patient's external id; path parameters fill "{name}" placeholders.
        """
        # URL substitutions are percent-encoded so an id cannot change the path or query
        url = endpoint.endpoint_url.replace(PATIENT_ID_PLACEHOLDER, quote(patient_external_id, safe=""))
        params: Dict[str, str] = {}
        headers: Dict[str, str] = {"Accept": FHIR_JSON}
        body: Dict[str, Any] = {}

        for param in endpoint.endpoint_parameters:
            value = param.default_value
            if value is None:
                if param.required:
                    value = patient_external_id
                else:
                    continue
            value = str(value).replace(PATIENT_ID_PLACEHOLDER, patient_external_id)

            if param.location == "path":
                url = url.replace("{" + param.name + "}", quote(value, safe=""))
            elif param.location == "header":
                headers[param.name] = value
            elif param.location == "body":
                body[param.name] = value
            else:
                params[param.name] = value

        if endpoint.api_key:
            headers["X-API-Key"] = endpoint.api_key
        if endpoint.auth_token:
            headers["Authorization"] = f"Bearer {endpoint.auth_token}"

        method = (endpoint.http_method or "GET").upper()
        request = {"method": method, "url": url, "params": params, "headers": headers}
        if method == "POST":
            headers["Content-Type"] = FHIR_JSON
            request["data"] = orjson.dumps(body)
        return request

    async def _call(self, request: Dict[str, Any]) -> Tuple[int, str]:
        """Perform one HTTP call; raise UpstreamFailure on any unusable answer"""
        if self._session is None:
            raise RuntimeError("FHIR provider not initialized. Call initialize() first.")

        try:
            async with self._session.request(timeout=self._timeout(), **request) as response:
                text = await response.text()
                if response.status < 200 or response.status >= 300:
                    raise UpstreamFailure(f"HTTP {response.status}: {response.reason}", response.status)
                return response.status, text
        except asyncio.TimeoutError:
            raise UpstreamFailure(f"Timed out after {self.config.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise UpstreamFailure(f"Network error: {e}")
        except UnicodeDecodeError:
            raise UpstreamFailure("Response body is not valid text")

    async def fetch(self, endpoint, patient_external_id: str) -> FhirFetchResult:
        """
        Fetch FHIR data for a patient.

        Success means a 2xx answer with a non-empty body that parses as JSON;
        the body is returned verbatim.
        """
        self.total_calls += 1
        request = self.build_request(endpoint, patient_external_id)
        started = time.perf_counter()
        status = None

        try:
            status, text = await self._call(request)
            if not text or not text.strip():
                raise UpstreamFailure("Empty response body")
            try:
                orjson.loads(text)
            except orjson.JSONDecodeError:
                raise UpstreamFailure("Response body is not valid JSON")

            return FhirFetchResult(
                success=True,
                status_code=status,
                body=text,
                elapsed_ms=self._elapsed_ms(started)
            )

        except UpstreamFailure as e:
            self.failed_calls += 1
            logger.warning(f"FHIR fetch from {request['url']} failed: {e}")
            return FhirFetchResult(
                success=False,
                status_code=status if status is not None else e.upstream_status,
                elapsed_ms=self._elapsed_ms(started),
                error=str(e)
            )

    async def validate(self, endpoint, sample_patient_id: str = "example") -> FhirFetchResult:
        """
        Call an endpoint with a sample id and check that it answers with a FHIR document
        of the configured resource type (or a Bundle).
        """
        self.total_calls += 1
        request = self.build_request(endpoint, sample_patient_id)
        started = time.perf_counter()
        status = None

        try:
            status, text = await self._call(request)
            if not text or not text.strip():
                raise UpstreamFailure("Empty response from endpoint")
            try:
                document = orjson.loads(text)
            except orjson.JSONDecodeError:
                raise UpstreamFailure("Response does not conform to FHIR JSON format")
            if not is_valid_fhir_document(document, endpoint.fhir_resource_type):
                raise UpstreamFailure("Response does not conform to FHIR JSON format")

            logger.info(f"Validated FHIR endpoint {request['url']}")
            return FhirFetchResult(success=True, status_code=status, elapsed_ms=self._elapsed_ms(started))

        except UpstreamFailure as e:
            self.failed_calls += 1
            return FhirFetchResult(
                success=False,
                status_code=status if status is not None else e.upstream_status,
                elapsed_ms=self._elapsed_ms(started),
                error=str(e)
            )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
