"""Entity resolution: similarity search and the phased resolver."""

from rateit.resolution.resolver import EntityResolver, ResolutionResult
from rateit.resolution.similarity_index import Candidate, SimilarityIndex

__all__ = [
    "Candidate",
    "EntityResolver",
    "ResolutionResult",
    "SimilarityIndex",
]
