"""
Embedding providers for vector-based semantic search.

Two strategies share one capability (text in, unit-length vector out):

* ``OnDeviceEmbedder`` loads a sentence-transformers model lazily, once per
  process, trying fallback model names in order.
* ``RemoteEmbedder`` calls the Google GenAI embedding API and transparently
  falls back to an on-device embedder on any failure.

Providers never raise for unavailability; they return ``None``.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

import numpy as np
from google.genai import Client as GenAIClient

from .errors import InvalidEmbedding, ProviderUnavailable

logger = logging.getLogger(__name__)

MAX_EMBED_CHARS = 8000

_DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
_DEFAULT_LOCAL_FALLBACKS = ("all-MiniLM-L6-v2",)
_DEFAULT_REMOTE_MODEL = "gemini-embedding-001"


class ProviderKind(str, Enum):
    ON_DEVICE = "ondevice"
    REMOTE = "remote"

    @classmethod
    def parse(cls, raw: "str | ProviderKind | None") -> "ProviderKind":
        if isinstance(raw, ProviderKind):
            return raw
        if raw is None:
            return cls.ON_DEVICE
        tag = raw.strip().lower().replace("_", "-")
        if tag in {"ondevice", "on-device", "local"}:
            return cls.ON_DEVICE
        if tag in {"remote", "genai", "google"}:
            return cls.REMOTE
        raise ValueError(f"Unknown embedding provider: {raw!r}")


@dataclass(frozen=True)
class Embedding:
    """A validated vector and the (provider, model) that produced it."""

    vector: list[float]
    model: str

    @property
    def dim(self) -> int:
        return len(self.vector)


class Embedder(Protocol):
    """Capability shared by all providers."""

    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        """Embed *text*; return ``None`` when no embedding can be produced."""


def validate_embedding(values: Any) -> list[float]:
    """Return *values* as a float list or raise ``InvalidEmbedding``."""
    if not isinstance(values, (list, tuple, np.ndarray)):
        raise InvalidEmbedding(f"Embedding must be a sequence, got {type(values).__name__}")
    if len(values) == 0:
        raise InvalidEmbedding("Embedding is empty")
    for value in values:
        if isinstance(value, (bool, np.bool_)) or not isinstance(value, (int, float, np.number)):
            raise InvalidEmbedding(f"Embedding contains non-numeric value {value!r}")
    vector = np.asarray(values, dtype=np.float64)
    if not np.isfinite(vector).all():
        raise InvalidEmbedding("Embedding contains non-finite values")
    return vector.tolist()


def is_valid_embedding(values: Any) -> bool:
    try:
        validate_embedding(values)
    except InvalidEmbedding:
        return False
    return True


def flatten_output(raw: Any) -> np.ndarray:
    """Flatten a model output (array or nested lists) into a 1-D float array."""
    try:
        return np.asarray(raw, dtype=np.float64).ravel()
    except (TypeError, ValueError) as exc:
        raise InvalidEmbedding(f"Model output is not numeric: {exc}") from exc


def normalize_unit(vector: Any) -> np.ndarray:
    """Scale *vector* to L2 norm 1; zero vectors are returned unchanged."""
    array = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(array)
    if norm == 0:
        return array
    return array / norm


def _load_sentence_transformer(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class OnDeviceEmbedder:
    """Generate embeddings with a locally loaded sentence-transformers model."""

    def __init__(
        self,
        *,
        model_name: str | None = None,
        fallback_models: list[str] | tuple[str, ...] | None = None,
        loader: Callable[[str], Any] | None = None,
    ) -> None:
        self.model_name = model_name or os.getenv(
            "CONTENT_EXPLORER_EMBEDDING_MODEL", _DEFAULT_LOCAL_MODEL
        )
        if fallback_models is None:
            raw = os.getenv("CONTENT_EXPLORER_EMBEDDING_FALLBACK_MODELS")
            fallback_models = (
                tuple(m.strip() for m in raw.split(",") if m.strip())
                if raw
                else _DEFAULT_LOCAL_FALLBACKS
            )
        self.fallback_models = tuple(fallback_models)
        self._loader = loader or _load_sentence_transformer
        self._lock = threading.Lock()
        self._loaded = False
        self._model: Any | None = None
        self._loaded_name: str | None = None

    @property
    def candidate_models(self) -> list[str]:
        names = [self.model_name]
        names.extend(m for m in self.fallback_models if m not in names)
        return names

    @property
    def loaded_model_name(self) -> str | None:
        return self._loaded_name

    def _ensure_model(self) -> Any:
        """Load the model at most once, even under concurrent first use."""
        if self._loaded:
            if self._model is None:
                raise ProviderUnavailable("No on-device embedding model could be loaded")
            return self._model

        with self._lock:
            if not self._loaded:
                for name in self.candidate_models:
                    try:
                        self._model = self._loader(name)
                    except Exception as exc:
                        logger.warning("Failed to load embedding model %s: %s", name, exc)
                        continue
                    self._loaded_name = name
                    logger.info("Loaded on-device embedding model %s", name)
                    break
                else:
                    logger.error(
                        "No on-device embedding model available (tried %s)",
                        ", ".join(self.candidate_models),
                    )
                self._loaded = True

        if self._model is None:
            raise ProviderUnavailable("No on-device embedding model could be loaded")
        return self._model

    def generate(self, text: str, *, query: bool = False) -> Embedding | None:  # noqa: ARG002
        try:
            model = self._ensure_model()
        except ProviderUnavailable:
            return None

        try:
            raw = model.encode(
                text[:MAX_EMBED_CHARS], normalize_embeddings=True, convert_to_numpy=True
            )
            vector = validate_embedding(normalize_unit(flatten_output(raw)))
        except InvalidEmbedding as exc:
            logger.warning("Discarding invalid on-device embedding: %s", exc)
            return None
        except Exception as exc:
            logger.error("On-device embedding error: %s", exc)
            return None
        return Embedding(vector=vector, model=f"ondevice:{self._loaded_name}")


class RemoteEmbedder:
    """Generate embeddings via Google GenAI, falling back to on-device."""

    def __init__(
        self,
        *,
        fallback: OnDeviceEmbedder,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.fallback = fallback
        self.model = model or os.getenv("CONTENT_EXPLORER_REMOTE_MODEL", _DEFAULT_REMOTE_MODEL)
        raw_dim = os.getenv("CONTENT_EXPLORER_REMOTE_DIM")
        self.dim = dim or (int(raw_dim) if raw_dim else None)

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            self._client = GenAIClient(api_key=resolved_key) if resolved_key else None

    @property
    def configured(self) -> bool:
        return self._client is not None

    def generate(self, text: str, *, query: bool = False) -> Embedding | None:
        if self._client is None:
            logger.warning("GOOGLE_API_KEY not configured, falling back to on-device")
            return self.fallback.generate(text, query=query)

        config: dict[str, Any] = {
            "task_type": "RETRIEVAL_QUERY" if query else "RETRIEVAL_DOCUMENT",
        }
        if self.dim:
            config["output_dimensionality"] = self.dim

        try:
            result = self._client.models.embed_content(
                model=self.model,
                contents=[text[:MAX_EMBED_CHARS]],
                config=config,
            )
            vector = validate_embedding(self._extract_values(result))
        except InvalidEmbedding as exc:
            logger.error("Invalid embedding response from %s: %s", self.model, exc)
            return self.fallback.generate(text, query=query)
        except Exception as exc:
            logger.error("Remote embedding error (%s): %s", self.model, exc)
            return self.fallback.generate(text, query=query)

        return Embedding(vector=vector, model=f"remote:{self.model}")

    @staticmethod
    def _extract_values(result: Any) -> Any:
        embeddings = getattr(result, "embeddings", None)
        if not embeddings:
            raise InvalidEmbedding("Response has no embeddings")
        values = getattr(embeddings[0], "values", None)
        if values is None:
            raise InvalidEmbedding("Response embedding has no values")
        return list(values) if not isinstance(values, (list, tuple)) else values


class EmbedderRegistry:
    """
    Process-wide provider service, built once at startup and injected.

    Embedders are created on first request per (provider, model) and reused, so
    each on-device model is loaded at most once.
    """

    def __init__(
        self,
        *,
        on_device: OnDeviceEmbedder | None = None,
        api_key: str | None = None,
        remote_client: Any | None = None,
        loader: Callable[[str], Any] | None = None,
    ) -> None:
        self._loader = loader
        self._default_on_device = on_device or OnDeviceEmbedder(loader=loader)
        self._api_key = api_key
        self._remote_client = remote_client
        self._lock = threading.Lock()
        self._on_device: dict[str, OnDeviceEmbedder] = {}
        self._remote: dict[str, RemoteEmbedder] = {}

    @property
    def on_device(self) -> OnDeviceEmbedder:
        return self._default_on_device

    def get(self, provider: ProviderKind | str | None, model: str | None = None) -> Embedder:
        kind = ProviderKind.parse(provider)
        with self._lock:
            if kind is ProviderKind.ON_DEVICE:
                if not model or model == self._default_on_device.model_name:
                    return self._default_on_device
                if model not in self._on_device:
                    self._on_device[model] = OnDeviceEmbedder(
                        model_name=model,
                        fallback_models=self._default_on_device.candidate_models,
                        loader=self._loader,
                    )
                return self._on_device[model]

            remote_key = model or ""
            if remote_key not in self._remote:
                self._remote[remote_key] = RemoteEmbedder(
                    fallback=self._default_on_device,
                    api_key=self._api_key,
                    model=model,
                    client=self._remote_client,
                )
            return self._remote[remote_key]

    def embed(
        self,
        text: str,
        provider: ProviderKind | str | None = None,
        model: str | None = None,
        *,
        query: bool = False,
    ) -> list[float] | None:
        embedding = self.get(provider, model).generate(text, query=query)
        return embedding.vector if embedding is not None else None
