from .classifier import classify, is_hiring_post, quick_hiring_filter
from .config import ProviderConfig, ProviderConfigError, load_provider_config
from .cover_letter import generate_cover_letter
from .filters import ListingFilters, apply_filters
from .models import ClassificationResult, Criteria, Listing, ScoredListing, ScoreResult
from .pipeline import analyze_listings, search_filter, select_passing
from .providers import JudgeAdapter, ProviderError
from .scorer import filter_and_rank, score_listing

__all__ = [
    "ClassificationResult", "Criteria", "JudgeAdapter", "Listing", "ListingFilters",
    "ProviderConfig", "ProviderConfigError", "ProviderError", "ScoreResult",
    "ScoredListing", "analyze_listings", "apply_filters", "classify",
    "filter_and_rank", "generate_cover_letter", "is_hiring_post", "load_provider_config",
    "quick_hiring_filter", "score_listing", "search_filter", "select_passing",
]
