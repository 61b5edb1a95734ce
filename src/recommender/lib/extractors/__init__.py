"""Signal extractors for the recommendation engine.

Each strategy is one :class:`SignalExtractor` subclass.  ``EXTRACTORS`` is
the explicit strategy → extractor table; every :class:`StrategyType` has
exactly one entry.
"""

from ...models import StrategyType
from .base import ExtractorContext, SignalExtractor, top_scored
from .collaborative import CollaborativeFilteringExtractor
from .content_based import ContentBasedExtractor
from .similar_content import SimilarContentExtractor
from .trending import TrendingExtractor
from .user_interest import UserInterestExtractor

EXTRACTORS: dict[StrategyType, type[SignalExtractor]] = {
    StrategyType.TRENDING: TrendingExtractor,
    StrategyType.SIMILAR_CONTENT: SimilarContentExtractor,
    StrategyType.USER_INTEREST: UserInterestExtractor,
    StrategyType.COLLABORATIVE_FILTERING: CollaborativeFilteringExtractor,
    StrategyType.CONTENT_BASED: ContentBasedExtractor,
}


def build_extractors(context: ExtractorContext) -> dict[StrategyType, SignalExtractor]:
    """Instantiate one extractor per strategy sharing *context*."""
    return {strategy: cls(context) for strategy, cls in EXTRACTORS.items()}


__all__ = [
    "EXTRACTORS",
    "ExtractorContext",
    "SignalExtractor",
    "build_extractors",
    "top_scored",
    "CollaborativeFilteringExtractor",
    "ContentBasedExtractor",
    "SimilarContentExtractor",
    "TrendingExtractor",
    "UserInterestExtractor",
]
