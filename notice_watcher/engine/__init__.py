"""Engine components orchestrating fetch → extract → detect → preview → dispatch."""

from .detector import ChangeDetector, ChangeEvent, Detection, DetectionState
from .dispatcher import DispatchReport, Dispatcher, NotificationOutcome
from .extractor import UNAVAILABLE, ExtractionResult, Extractor, Unavailable
from .fetcher import FetchError, FetchRequest, FetchResponse, Fetcher
from .fingerprint import fingerprint, has_changed
from .preview import PreviewBuilder, PreviewItem
from .render import render_listing, render_update
from .thread_pool import ThreadPoolManager

__all__ = [
    "ChangeDetector",
    "ChangeEvent",
    "Detection",
    "DetectionState",
    "DispatchReport",
    "Dispatcher",
    "ExtractionResult",
    "Extractor",
    "FetchError",
    "FetchRequest",
    "FetchResponse",
    "Fetcher",
    "NotificationOutcome",
    "PreviewBuilder",
    "PreviewItem",
    "ThreadPoolManager",
    "UNAVAILABLE",
    "Unavailable",
    "fingerprint",
    "has_changed",
    "render_listing",
    "render_update",
]
