"""OpenAI embeddings generation with validation."""

from openai import OpenAI

from hostenly.core.config import get_settings
from hostenly.core.logging import get_logger

logger = get_logger(__name__)


class EmbeddingProvider:
    """Maps text to fixed-length vectors with an OpenAI embedding model."""

    def __init__(self, client: OpenAI, model: str, dimension: int):
        self.client = client
        self.model = model
        self.dimension = dimension

    @classmethod
    def from_settings(cls) -> "EmbeddingProvider":
        settings = get_settings()
        return cls(
            client=OpenAI(api_key=settings.OPENAI_API_KEY),
            model=settings.EMBEDDING_MODEL,
            dimension=settings.EMBEDDING_DIM,
        )

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (each vector is list of floats)

        Raises:
            ValueError: If embedding dimension doesn't match the configured dimension
            Exception: If OpenAI API call fails
        """
        if not texts:
            return []

        try:
            response = self.client.embeddings.create(model=self.model, input=texts)

            embeddings = []
            for i, embedding_obj in enumerate(response.data):
                embedding = embedding_obj.embedding

                if len(embedding) != self.dimension:
                    raise ValueError(
                        f"Embedding dimension mismatch for text {i}: "
                        f"expected {self.dimension}, got {len(embedding)}"
                    )

                embeddings.append(embedding)

            logger.info(
                f"Generated {len(embeddings)} embeddings using {self.model}",
                extra={"extra_data": {"model": self.model, "count": len(embeddings)}},
            )

            return embeddings

        except Exception as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise

    def embed_text(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed_texts([text])[0]

