"""Services over the entity store: feedback, digests, ranking and insights."""

from rateit.services.digest import SentimentDigestBuilder
from rateit.services.feedback import FeedbackService
from rateit.services.insights import InsightService
from rateit.services.ranking import CandidateRanker

__all__ = [
    "CandidateRanker",
    "FeedbackService",
    "InsightService",
    "SentimentDigestBuilder",
]
