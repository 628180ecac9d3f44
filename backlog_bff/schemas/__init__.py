"""Public schema exports."""

from .analysis import AnalyzeRequest, AnalyzeResponse, ItemAnalysis
from .auth import AuthCallbackResponse, AuthorizationURLResponse
from .items import ItemListResponse, SuccessResponse

__all__ = [
    "AnalyzeRequest",
    "AnalyzeResponse",
    "AuthCallbackResponse",
    "AuthorizationURLResponse",
    "ItemAnalysis",
    "ItemListResponse",
    "SuccessResponse",
]
