import asyncio
import json
import logging
from typing import List, Optional

import boto3
import numpy as np
from botocore.exceptions import BotoCoreError, ClientError
from sentence_transformers import SentenceTransformer

from ..config import Settings, settings as default_settings
from ..exceptions import EmbeddingGatewayError


class EmbeddingManager:
    """Manages text embeddings with a local sentence-transformers model."""

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        model: Optional[SentenceTransformer] = None,
    ):
        """
        Initialize the embedding manager.

        Args:
            model_name: sentence-transformers model id (uses settings if None)
            device: torch device for the model
            model: Preloaded model, mostly useful in tests
        """
        self.logger = logging.getLogger(__name__)
        self.model_name = model_name or default_settings.embedding_model_name
        self.device = device or default_settings.embedding_device
        self.model = model or self._initialize_model()
        self.dimension = int(self.model.get_sentence_embedding_dimension())

    def _initialize_model(self) -> SentenceTransformer:
        """Initialize the sentence transformer model."""
        try:
            model = SentenceTransformer(self.model_name, device=self.device)
            self.logger.info(f"Embedding model loaded: {self.model_name}")
            return model
        except Exception as e:
            self.logger.error(f"Failed to load embedding model: {e}")
            raise EmbeddingGatewayError(f"Failed to load embedding model {self.model_name}: {e}") from e

    def _encode(self, text: str) -> List[float]:
        embedding = self.model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True
        )
        return _checked_vector(embedding, self.dimension)

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for one text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector of length ``dimension``
        """
        try:
            return await asyncio.to_thread(self._encode, text)
        except EmbeddingGatewayError:
            raise
        except Exception as e:
            self.logger.error(f"Error generating embedding: {e}")
            raise EmbeddingGatewayError(f"Embedding request failed: {e}") from e


class BedrockEmbeddingManager:
    """Generates embeddings with Amazon Titan through the Bedrock runtime."""

    def __init__(
        self,
        model_id: Optional[str] = None,
        region: Optional[str] = None,
        dimension: Optional[int] = None,
        client=None,
    ):
        self.logger = logging.getLogger(__name__)
        self.model_name = model_id or default_settings.bedrock_embedding_model
        self.dimension = dimension or default_settings.embedding_dimension
        self.client = client or boto3.client(
            "bedrock-runtime",
            region_name=region or default_settings.aws_region,
        )
        self.logger.info(f"Bedrock embedding client ready: {self.model_name}")

    def _invoke(self, text: str) -> List[float]:
        response = self.client.invoke_model(
            modelId=self.model_name,
            contentType="application/json",
            accept="application/json",
            body=json.dumps({"inputText": text}),
        )
        payload = json.loads(response["body"].read())
        return _checked_vector(payload["embedding"], self.dimension)

    async def embed(self, text: str) -> List[float]:
        try:
            return await asyncio.to_thread(self._invoke, text)
        except EmbeddingGatewayError:
            raise
        except (BotoCoreError, ClientError, KeyError, ValueError) as e:
            self.logger.error(f"Error generating Bedrock embedding: {e}")
            raise EmbeddingGatewayError(f"Embedding request failed: {e}") from e


def _checked_vector(embedding, dimension: int) -> List[float]:
    vector = np.asarray(embedding, dtype=float).ravel()
    if vector.shape[0] != dimension:
        raise EmbeddingGatewayError(
            f"Embedding has dimension {vector.shape[0]}, expected {dimension}"
        )
    return vector.tolist()


def create_embedding_manager(config: Optional[Settings] = None):
    """Build the embedding gateway selected by ``embedding_provider``."""
    config = config or default_settings
    if config.embedding_provider == "bedrock":
        return BedrockEmbeddingManager(
            model_id=config.bedrock_embedding_model,
            region=config.aws_region,
            dimension=config.embedding_dimension,
        )
    return EmbeddingManager(
        model_name=config.embedding_model_name,
        device=config.embedding_device,
    )
