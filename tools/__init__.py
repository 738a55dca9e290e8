from .provider import (
    DraftGenerator,
    EmailProvider,
    LoggingPresenter,
    MeetingClassifier,
    Presenter,
    ProviderError,
    classify_by_attendees,
)
from .drafting import LlmDraftGenerator, TemplateDraftGenerator
from .unipile_tools import UnipileClient

__all__ = [
    "DraftGenerator", "EmailProvider", "LoggingPresenter", "MeetingClassifier",
    "Presenter", "ProviderError", "classify_by_attendees",
    "LlmDraftGenerator", "TemplateDraftGenerator",
    "UnipileClient",
]
