import pytest

from scis_exchange.providers import (
    SENTIMENT_PROVIDER_REGISTRY,
    BaseProvider,
    LexiconSentimentProvider,
    SentimentProviderConfig,
    SklearnSentimentProvider,
    create_sentiment_provider,
    get_sentiment_provider_class,
)
from scis_exchange.providers.sentiment import NEGATIVE, NEUTRAL, POSITIVE, clean_text


def test_registry_resolves_providers():
    assert get_sentiment_provider_class("sklearn") is SklearnSentimentProvider
    assert get_sentiment_provider_class("Lexicon") is LexiconSentimentProvider
    assert isinstance(create_sentiment_provider("lexicon"), LexiconSentimentProvider)
    for provider_class in SENTIMENT_PROVIDER_REGISTRY.values():
        assert issubclass(provider_class, BaseProvider)


def test_registry_rejects_unknown_provider():
    with pytest.raises(ValueError, match="Available providers"):
        get_sentiment_provider_class("vader")


def test_clean_text():
    assert clean_text("  Great!!  Doctor,\nthanks ") == "great doctor thanks"
    assert clean_text(None) == ""


def test_analyze_requires_initialize():
    provider = LexiconSentimentProvider()
    with pytest.raises(RuntimeError):
        provider.analyze("great care")


def test_empty_text_needs_no_model():
    provider = SklearnSentimentProvider()
    result = provider.analyze("   ")
    assert result.label == NEUTRAL
    assert result.score == 0.0


@pytest.mark.asyncio
async def test_lexicon_classification(lexicon):
    assert lexicon.analyze("Great and wonderful care").label == POSITIVE
    assert lexicon.analyze("Terrible, awful wait").label == NEGATIVE

    tie = lexicon.analyze("good doctor but bad parking")
    assert tie.label == NEUTRAL
    assert tie.score == 0.5

    nothing = lexicon.analyze("the appointment was on tuesday")
    assert nothing.label == NEUTRAL
    assert nothing.score == 0.0


@pytest.mark.asyncio
async def test_sklearn_trains_on_seed_corpus():
    provider = SklearnSentimentProvider()
    await provider.initialize()

    assert provider.get_stats()["source"] == "seed"
    assert provider.analyze("Excellent care, highly recommend").label == POSITIVE

    result = provider.analyze("Terrible experience, awful and rude, worst visit")
    assert result.label == NEGATIVE
    assert 0.0 < result.score <= 1.0


@pytest.mark.asyncio
async def test_sklearn_round_trips_through_joblib(tmp_path):
    trained = SklearnSentimentProvider()
    await trained.initialize()
    model_path = str(tmp_path / "sentiment.joblib")
    trained.save(model_path)

    loaded = SklearnSentimentProvider(SentimentProviderConfig(model_path=model_path))
    await loaded.initialize()

    assert loaded.get_stats()["source"] == model_path
    text = "Excellent doctor, highly recommend"
    assert loaded.analyze(text).label == trained.analyze(text).label


@pytest.mark.asyncio
async def test_missing_model_path_falls_back_to_seed(tmp_path):
    provider = SklearnSentimentProvider(SentimentProviderConfig(model_path=str(tmp_path / "absent.joblib")))
    await provider.initialize()
    assert provider.get_stats()["source"] == "seed"
