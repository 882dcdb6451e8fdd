import logging
import numpy as np
from typing import List, Optional
from sentence_transformers import SentenceTransformer
from app.core.config import get_settings
from app.core.interfaces import EmbeddingProviderInterface
from app.schemas.item import ItemMetadata

logger = logging.getLogger(__name__)

MAX_ITEM_TEXT_CHARS = 1950
MAX_TAGS_IN_TEXT = 15
MAX_FEATURES_IN_TEXT = 6

# Categories that say little about how a game plays
_GENERIC_CATEGORIES = {
    "steam achievements", "full controller support", "partial controller support",
    "steam cloud", "steam trading cards", "stats",
}
_MULTIPLAYER_KEYWORDS = ("multi-player", "multiplayer", "co-op", "online", "pvp", "mmo")

class SentenceTransformerEmbeddingProvider(EmbeddingProviderInterface):
    """Embedding provider backed by a local sentence-transformers model"""

    def __init__(self, model_name: Optional[str] = None):
        self.settings = get_settings()
        self.model_name = model_name or self.settings.EMBEDDING_MODEL_NAME
        self.model = None
        self._load_model()

    def _load_model(self):
        """Load the sentence transformer model"""
        try:
            logger.info(f"Loading embedding model: {self.model_name}")
            self.model = SentenceTransformer(self.model_name)
            logger.info("Embedding model loaded successfully")
        except Exception as e:
            logger.error(f"Error loading embedding model: {str(e)}")
            raise

    @property
    def dimension(self) -> int:
        return int(self.model.get_sentence_embedding_dimension())

    def embed(self, text: str) -> np.ndarray:
        """Encode text to a unit-length embedding vector"""
        embedding = self.model.encode([text], normalize_embeddings=True)[0]
        return np.asarray(embedding, dtype=np.float64)

def _feature_categories(categories: List[str]) -> List[str]:
    kept = [c for c in categories if c.lower() not in _GENERIC_CATEGORIES]
    return kept[:MAX_FEATURES_IN_TEXT]

def build_item_text(metadata: ItemMetadata) -> str:
    """Text representation of a catalog item for embedding"""
    sections: List[str] = []
    used = 0

    def add(text: str) -> None:
        nonlocal used
        if used + len(text) > MAX_ITEM_TEXT_CHARS:
            return
        sections.append(text)
        used += len(text) + 2

    add(f"Game: {metadata.name} ({metadata.release_year or 'Unknown'})")
    if metadata.genres:
        add(f"Genres: {', '.join(metadata.genres)}")
    features = _feature_categories(metadata.categories)
    if features:
        add(f"Features: {', '.join(features)}")
    if metadata.developers:
        add(f"Developer: {', '.join(metadata.developers[:2])}")
    if metadata.short_description:
        add(f"Summary: {metadata.short_description}")
    if metadata.tags:
        add(f"Player Tags: {', '.join(metadata.tags[:MAX_TAGS_IN_TEXT])}")
    if any(k in c.lower() for c in metadata.categories for k in _MULTIPLAYER_KEYWORDS):
        add("Multiplayer: Yes")

    # Community rating
    signals = []
    if metadata.review_score:
        signals.append(f"{metadata.review_score}% positive reviews")
    if metadata.review_count and metadata.review_count >= 5000:
        signals.append(f"{metadata.review_count // 1000}k+ reviews")
    if signals:
        add(f"Community rating: {', '.join(signals)}")
    if metadata.is_free:
        add("Free to play")

    return ". ".join(sections).strip()
