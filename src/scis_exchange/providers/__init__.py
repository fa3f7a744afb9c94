"""
Providers Package

External collaborators behind a common lifecycle:

- FhirEndpointProvider: outbound calls to hospital FHIR endpoints
- SklearnSentimentProvider: TF-IDF + logistic regression sentiment classifier
- LexiconSentimentProvider: keyword sentiment classifier

All providers implement the BaseProvider interface.
"""

from .base_provider import BaseProvider, ProviderConfig
from .fhir_provider import FhirEndpointProvider, FhirProviderConfig, FhirFetchResult
from .sentiment import (
    SentimentProvider,
    SentimentProviderConfig,
    SentimentResult,
    SklearnSentimentProvider,
    LexiconSentimentProvider,
)

__all__ = [
    # Base classes
    'BaseProvider',
    'ProviderConfig',

    # FHIR
    'FhirEndpointProvider',
    'FhirProviderConfig',
    'FhirFetchResult',

    # Sentiment
    'SentimentProvider',
    'SentimentProviderConfig',
    'SentimentResult',
    'SklearnSentimentProvider',
    'LexiconSentimentProvider',
]

# Sentiment provider registry for configuration-driven loading
SENTIMENT_PROVIDER_REGISTRY = {
    'sklearn': SklearnSentimentProvider,
    'lexicon': LexiconSentimentProvider,
}


def get_sentiment_provider_class(provider_name: str):
    """
    Get sentiment provider class by name

    Raises:
        ValueError: If provider name is not recognized
    """
    provider_name = provider_name.lower()

    if provider_name not in SENTIMENT_PROVIDER_REGISTRY:
        available = ', '.join(SENTIMENT_PROVIDER_REGISTRY.keys())
        raise ValueError(f"Unknown sentiment provider '{provider_name}'. Available providers: {available}")

    return SENTIMENT_PROVIDER_REGISTRY[provider_name]


def create_sentiment_provider(provider_name: str, config: SentimentProviderConfig = None) -> SentimentProvider:
    """Create a sentiment provider instance by name"""
    provider_class = get_sentiment_provider_class(provider_name)
    return provider_class(config=config)
