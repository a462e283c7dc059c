from neurofeed.services.collaborators.base import Collaborator
from neurofeed.services.collaborators.cleanup import CleanupAdvisor, GeminiCleanupAdvisor
from neurofeed.services.collaborators.intent import GeminiIntentAnalyzer, IntentAnalyzer
from neurofeed.services.collaborators.reranker import GeminiReranker, Reranker

__all__ = [
    "Collaborator",
    "IntentAnalyzer",
    "Reranker",
    "CleanupAdvisor",
    "GeminiIntentAnalyzer",
    "GeminiReranker",
    "GeminiCleanupAdvisor",
]
