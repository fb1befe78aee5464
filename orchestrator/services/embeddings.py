"""
Embedding providers: Hugging Face Inference API (default) or OpenAI.

Responsibility: turn a text into a fixed-length vector. Vectors are L2-normalized
so cosine similarity in the index is a plain dot product.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from orchestrator.core.config import (
    EMBED_API_TIMEOUT,
    HF_API_KEY,
    HF_EMBED_MODEL,
    OPENAI_API_KEY,
    OPENAI_EMBED_MODEL,
    VECTOR_DIM,
)
from orchestrator.core.errors import CollaboratorError, ServiceUnavailableError

logger = logging.getLogger(__name__)

HF_API_URL_ROUTER = (
    "https://router.huggingface.co/hf-inference/models/"
    f"{HF_EMBED_MODEL}/pipeline/feature-extraction"
)
HF_API_URL_STANDARD = f"https://api-inference.huggingface.co/models/{HF_EMBED_MODEL}"


def normalize(vector: list[float]) -> list[float]:
    norm = sum(x * x for x in vector) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vector]


class EmbeddingService(ABC):
    provider: str = ""
    dimension: int = VECTOR_DIM

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        ...


class HFEmbeddingService(EmbeddingService):
    """all-MiniLM-L6-v2 through the HF router, falling back to the standard inference URL on 403."""

    provider = "huggingface"

    def __init__(
        self,
        api_key: str = HF_API_KEY,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = EMBED_API_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._transport = transport
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        if not self._api_key:
            raise ServiceUnavailableError(
                "HF_API_KEY must be set in .env. Get a token from https://huggingface.co/settings/tokens",
                provider=self.provider,
            )
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        payload = {"inputs": [text], "options": {"wait_for_model": True}}
        response = None
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                for api_url in (HF_API_URL_ROUTER, HF_API_URL_STANDARD):
                    response = await client.post(api_url, json=payload, headers=headers)
                    if response.status_code == 403 and api_url == HF_API_URL_ROUTER:
                        logger.info("[embeddings:hf] router returned 403; trying standard URL")
                        continue
                    break
        except httpx.HTTPError as e:
            raise CollaboratorError("Embedding request failed", provider=self.provider, details=str(e)) from e

        if response.status_code != 200:
            status = response.status_code
            if status == 401:
                message = "Invalid HF API key. Check HF_API_KEY"
            elif status == 503:
                message = "HF model is loading. Retry later"
            else:
                message = "Embedding provider failed"
            logger.warning("[embeddings:hf] HF API error %s: %s", status, response.text[:200])
            raise CollaboratorError(
                message, provider=self.provider, upstream_status=status, details=response.text[:200],
            )

        result = response.json()
        # Router returns [[...]] for a batch of one; older endpoints may return [...]
        vector = result[0] if result and isinstance(result[0], list) else result
        if not isinstance(vector, list) or not vector:
            raise CollaboratorError("HF API returned an empty embedding", provider=self.provider)
        return normalize([float(x) for x in vector])


class OpenAIEmbeddingService(EmbeddingService):
    provider = "openai"

    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = OPENAI_EMBED_MODEL, client=None) -> None:
        self._api_key = api_key
        self._model = model
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._api_key:
                raise ServiceUnavailableError("OPENAI_API_KEY must be set in .env", provider=self.provider)
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        from openai import APIError

        client = self._get_client()
        try:
            response = await client.embeddings.create(
                model=self._model,
                input=text,
                dimensions=self.dimension,
            )
        except APIError as e:
            raise CollaboratorError(
                "Embedding provider failed",
                provider=self.provider,
                upstream_status=getattr(e, "status_code", None),
                details=str(e),
            ) from e
        if not response.data:
            raise CollaboratorError("OpenAI returned no embedding", provider=self.provider)
        return normalize(list(response.data[0].embedding))


def build_embedding_service() -> EmbeddingService:
    """OpenAI when OPENAI_API_KEY is set, else Hugging Face."""
    if OPENAI_API_KEY:
        return OpenAIEmbeddingService()
    return HFEmbeddingService()
