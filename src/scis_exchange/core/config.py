"""
Centralized configuration management for SCIS Exchange

Every setting has an environment variable with a default. When
SCIS_CONFIG_FILE points at a JSON document, its values take precedence
over the environment.
"""

import json
import os
from typing import Optional, Dict, Any
from dataclasses import dataclass, field, asdict
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)

MASK = "***masked***"


@dataclass
class DatabaseConfig:
    """MongoDB connection settings"""
    uri: str = field(default_factory=lambda: os.getenv("MONGODB_URI", "mongodb://localhost:27017"))
    name: str = field(default_factory=lambda: os.getenv("SCIS_DB", "scis_exchange"))
    max_pool_size: int = field(default_factory=lambda: int(os.getenv("MONGO_POOL_SIZE", "50")))
    min_pool_size: int = field(default_factory=lambda: int(os.getenv("MONGO_MIN_POOL_SIZE", "10")))
    max_idle_time_ms: int = field(default_factory=lambda: int(os.getenv("MONGO_MAX_IDLE_TIME_MS", "10000")))
    server_selection_timeout_ms: int = field(default_factory=lambda: int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000")))

    hospitals_collection: str = "hospitals"
    users_collection: str = "users"
    patients_collection: str = "patients"
    consents_collection: str = "patient_consents"
    data_requests_collection: str = "data_requests"
    endpoints_collection: str = "data_request_endpoints"
    feedback_collection: str = "patient_feedback"
    audit_collection: str = "audit_logs"

    def collections(self) -> Dict[str, str]:
        """Logical collection name -> configured MongoDB collection"""
        return {
            "hospitals": self.hospitals_collection,
            "users": self.users_collection,
            "patients": self.patients_collection,
            "patient_consents": self.consents_collection,
            "data_requests": self.data_requests_collection,
            "data_request_endpoints": self.endpoints_collection,
            "patient_feedback": self.feedback_collection,
            "audit_logs": self.audit_collection,
        }


@dataclass
class RedisConfig:
    """Endpoint cache settings"""
    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    password: Optional[str] = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))
    db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    max_connections: int = field(default_factory=lambda: int(os.getenv("REDIS_POOL_SIZE", "50")))
    socket_timeout: int = field(default_factory=lambda: int(os.getenv("REDIS_SOCKET_TIMEOUT", "5")))
    socket_connect_timeout: int = field(default_factory=lambda: int(os.getenv("REDIS_CONNECT_TIMEOUT", "5")))
    decode_responses: bool = False  # orjson reads bytes
    enabled: bool = field(default_factory=lambda: os.getenv("CACHE_ENABLED", "true").lower() == "true")

    default_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("CACHE_DEFAULT_TTL", "3600")))
    endpoint_cache_ttl_seconds: int = field(default_factory=lambda: int(os.getenv("ENDPOINT_CACHE_TTL", "600")))


@dataclass
class HTTPConfig:
    """Outbound HTTP (FHIR endpoint) client settings"""
    total_timeout: int = field(default_factory=lambda: int(os.getenv("FHIR_TIMEOUT_SECONDS", "30")))
    connect_timeout: int = field(default_factory=lambda: int(os.getenv("FHIR_CONNECT_TIMEOUT_SECONDS", "10")))
    max_pool_size: int = field(default_factory=lambda: int(os.getenv("CONNECTION_POOL_SIZE", "100")))
    max_per_host: int = field(default_factory=lambda: int(os.getenv("HTTP_MAX_PER_HOST", "30")))
    ttl_dns_cache: int = field(default_factory=lambda: int(os.getenv("HTTP_DNS_CACHE_TTL", "300")))
    user_agent: str = field(default_factory=lambda: os.getenv("HTTP_USER_AGENT", "SCIS-Exchange/1.0"))


@dataclass
class SecurityConfig:
    """CORS settings; caller identity arrives in the X-User-Id header"""
    cors_origins: list = field(default_factory=lambda: os.getenv("CORS_ORIGINS", "*").split(","))
    cors_allow_credentials: bool = field(default_factory=lambda: os.getenv("CORS_ALLOW_CREDENTIALS", "true").lower() == "true")


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    # Rotating file output, off unless LOG_FILE is set
    log_file: Optional[str] = field(default_factory=lambda: os.getenv("LOG_FILE"))
    max_file_size: int = field(default_factory=lambda: int(os.getenv("LOG_MAX_FILE_SIZE", "10485760")))
    backup_count: int = field(default_factory=lambda: int(os.getenv("LOG_BACKUP_COUNT", "5")))


@dataclass
class ConsentConfig:
    """Consent store settings"""
    # 0 means grants never expire
    default_validity_days: int = field(default_factory=lambda: int(os.getenv("CONSENT_DEFAULT_VALIDITY_DAYS", "365")))


@dataclass
class ScoringConfig:
    """Feedback scoring and sentiment settings"""
    pre_treatment_weight: float = field(default_factory=lambda: float(os.getenv("TES_PRE_WEIGHT", "0.1")))
    post_treatment_weight: float = field(default_factory=lambda: float(os.getenv("TES_POST_WEIGHT", "0.3")))
    satisfaction_weight: float = field(default_factory=lambda: float(os.getenv("TES_SATISFACTION_WEIGHT", "0.3")))
    sentiment_weight: float = field(default_factory=lambda: float(os.getenv("TES_SENTIMENT_WEIGHT", "0.3")))

    sentiment_provider: str = field(default_factory=lambda: os.getenv("SENTIMENT_PROVIDER", "sklearn"))
    sentiment_model_path: Optional[str] = field(default_factory=lambda: os.getenv("SENTIMENT_MODEL_PATH"))

    # Performance insight thresholds (TES percentage)
    doctor_warning_threshold: float = field(default_factory=lambda: float(os.getenv("DOCTOR_TES_WARNING", "70")))
    doctor_critical_threshold: float = field(default_factory=lambda: float(os.getenv("DOCTOR_TES_CRITICAL", "50")))


@dataclass
class ApplicationConfig:
    """Main application configuration"""
    app_name: str = field(default_factory=lambda: os.getenv("APP_NAME", "SCIS Exchange"))
    app_version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))
    environment: str = field(default_factory=lambda: os.getenv("ENVIRONMENT", "development"))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    workers: int = field(default_factory=lambda: int(os.getenv("WORKERS", "1")))

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    http: HTTPConfig = field(default_factory=HTTPConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    consent: ConsentConfig = field(default_factory=ConsentConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ValueError listing every invalid setting"""
        errors = []

        if not self.database.uri:
            errors.append("Database URI is required")
        if not self.database.name:
            errors.append("Database name is required")

        if self.redis.enabled and not self.redis.host:
            errors.append("Redis host is required")
        if not (1 <= self.redis.port <= 65535):
            errors.append("Redis port must be between 1 and 65535")

        if self.http.total_timeout <= 0:
            errors.append("FHIR timeout must be positive")
        if self.http.connect_timeout <= 0 or self.http.connect_timeout > self.http.total_timeout:
            errors.append("FHIR connect timeout must be positive and not exceed the total timeout")

        if self.consent.default_validity_days < 0:
            errors.append("Consent validity days cannot be negative")

        weights = [
            self.scoring.pre_treatment_weight,
            self.scoring.post_treatment_weight,
            self.scoring.satisfaction_weight,
            self.scoring.sentiment_weight,
        ]
        if any(w < 0 for w in weights):
            errors.append("TES weights cannot be negative")
        if sum(weights[:3]) <= 0:
            errors.append("At least one rating weight must be positive")
        if self.scoring.doctor_critical_threshold > self.scoring.doctor_warning_threshold:
            errors.append("Critical TES threshold cannot exceed the warning threshold")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    def to_dict(self) -> Dict[str, Any]:
        """Settings as plain data with credentials masked, for logging"""
        data = asdict(self)
        if data["redis"]["password"]:
            data["redis"]["password"] = MASK
        if "@" in data["database"]["uri"]:
            scheme, _, rest = data["database"]["uri"].partition("://")
            data["database"]["uri"] = f"{scheme}://{MASK}@{rest.rsplit('@', 1)[1]}"
        return data


_SECTIONS = {
    "database": DatabaseConfig,
    "redis": RedisConfig,
    "http": HTTPConfig,
    "security": SecurityConfig,
    "logging": LoggingConfig,
    "consent": ConsentConfig,
    "scoring": ScoringConfig,
}


def load_config_from_file(file_path: str) -> ApplicationConfig:
    """
    Build configuration from a JSON file

    Top-level keys set application fields; objects named after a section
    ("database", "redis", ...) set that section's fields. Anything the
    file leaves out keeps its environment/default value.
    """
    try:
        with open(file_path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {file_path}")
        raise
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in configuration file {file_path}: {e}")
        raise

    try:
        sections = {name: cls(**data.pop(name, {})) for name, cls in _SECTIONS.items()}
        return ApplicationConfig(**data, **sections)
    except TypeError as e:
        raise ValueError(f"Unknown setting in {file_path}: {e}") from e


@lru_cache(maxsize=1)
def get_config() -> ApplicationConfig:
    """Process-wide configuration, read once"""
    config_file = os.getenv("SCIS_CONFIG_FILE")
    config = load_config_from_file(config_file) if config_file else ApplicationConfig()
    logger.info(f"Configuration loaded for environment: {config.environment}")
    return config


def get_database_config() -> DatabaseConfig:
    return get_config().database


def get_redis_config() -> RedisConfig:
    return get_config().redis


def get_http_config() -> HTTPConfig:
    return get_config().http


def get_consent_config() -> ConsentConfig:
    return get_config().consent


def get_scoring_config() -> ScoringConfig:
    return get_config().scoring
