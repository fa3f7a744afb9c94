"""
Sentiment Providers

Classify free-text patient feedback as Positive, Neutral or Negative with
a confidence in [0, 1]. Models are built or loaded once in initialize()
and reused for every call.
"""

import os
import re
import json
import logging
from abc import abstractmethod
from typing import Dict, List, Any, Optional
from dataclasses import dataclass

import numpy as np
import joblib
from sklearn.pipeline import Pipeline
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import LogisticRegression

from .base_provider import BaseProvider, ProviderConfig

logger = logging.getLogger(__name__)

POSITIVE = "Positive"
NEUTRAL = "Neutral"
NEGATIVE = "Negative"

SEED_CORPUS_PATH = os.path.join(os.path.dirname(__file__), "data", "sentiment_seed.json")


@dataclass
class SentimentResult:
    """Classifier output"""
    label: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {'label': self.label, 'score': self.score}


@dataclass
class SentimentProviderConfig(ProviderConfig):
    model_path: Optional[str] = None
    seed_corpus_path: str = SEED_CORPUS_PATH


def clean_text(text: str) -> str:
    if not isinstance(text, str):
        return ""
    text = text.lower()
    text = re.sub(r"[^a-z0-9\s']", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


class SentimentProvider(BaseProvider):
    """Interface for sentiment classifiers"""

    def __init__(self, config: SentimentProviderConfig = None):
        super().__init__(config or SentimentProviderConfig())
        self.config: SentimentProviderConfig = self.config

    def analyze(self, text: Optional[str]) -> SentimentResult:
        """
        Classify text. Empty or missing text is Neutral with score 0.0.
        """
        cleaned = clean_text(text or "")
        if not cleaned:
            return SentimentResult(label=NEUTRAL, score=0.0)
        if not self._initialized:
            raise RuntimeError(f"{self.__class__.__name__} not initialized. Call initialize() first.")

        self.total_calls += 1
        return self._classify(cleaned)

    @abstractmethod
    def _classify(self, cleaned_text: str) -> SentimentResult:
        pass


class LexiconSentimentProvider(SentimentProvider):
    """Keyword counting classifier"""

    POSITIVE_WORDS = {"excellent", "great", "good", "amazing", "wonderful", "fantastic", "outstanding"}
    NEGATIVE_WORDS = {"terrible", "awful", "bad", "poor", "disappointed", "horrible", "worst"}

    async def initialize(self) -> None:
        self._initialized = True

    def _classify(self, cleaned_text: str) -> SentimentResult:
        words = cleaned_text.split()
        positive = sum(1 for w in words if w in self.POSITIVE_WORDS)
        negative = sum(1 for w in words if w in self.NEGATIVE_WORDS)
        matched = positive + negative

        if positive > negative:
            return SentimentResult(label=POSITIVE, score=round(positive / matched, 4))
        if negative > positive:
            return SentimentResult(label=NEGATIVE, score=round(negative / matched, 4))
        return SentimentResult(label=NEUTRAL, score=0.5 if matched else 0.0)


class SklearnSentimentProvider(SentimentProvider):
    """
    TF-IDF + logistic regression classifier.

    Loads a joblib-saved pipeline when a model path is configured,
    otherwise fits once on the bundled seed corpus.
    """

    def __init__(self, config: SentimentProviderConfig = None):
        super().__init__(config)
        self.model: Optional[Pipeline] = None
        self.source: Optional[str] = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            if self.config.model_path and os.path.exists(self.config.model_path):
                self.model = joblib.load(self.config.model_path)
                self.source = self.config.model_path
            else:
                if self.config.model_path:
                    logger.warning(f"Sentiment model {self.config.model_path} not found; training on seed corpus")
                self.model = self._train(*self._load_seed_corpus())
                self.source = "seed"

            self._initialized = True
            logger.info(f"Sentiment model ready (source: {self.source})")

        except Exception as e:
            logger.error(f"Failed to initialize sentiment model: {e}")
            raise

    def _load_seed_corpus(self):
        with open(self.config.seed_corpus_path, "r", encoding="utf-8") as f:
            corpus: Dict[str, List[str]] = json.load(f)

        texts, labels = [], []
        for label, sentences in corpus.items():
            for sentence in sentences:
                texts.append(clean_text(sentence))
                labels.append(label)
        return texts, labels

    @staticmethod
    def _train(texts: List[str], labels: List[str]) -> Pipeline:
        model = Pipeline([
            ("tfidf", TfidfVectorizer(ngram_range=(1, 2), sublinear_tf=True)),
            ("clf", LogisticRegression(C=10.0, max_iter=1000, random_state=42)),
        ])
        model.fit(texts, labels)
        return model

    def save(self, path: str) -> None:
        """Persist the fitted pipeline so later processes can skip training"""
        joblib.dump(self.model, path)

    def _classify(self, cleaned_text: str) -> SentimentResult:
        probabilities = self.model.predict_proba([cleaned_text])[0]
        best = int(np.argmax(probabilities))
        return SentimentResult(
            label=str(self.model.classes_[best]),
            score=round(float(probabilities[best]), 4)
        )

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats['source'] = self.source
        return stats
