"""
Content Bridge

Drafts, pending edits and publishing for content stored in a table service.
"""

import importlib.metadata

__version__ = importlib.metadata.version("content-bridge")

from .config import AirtableConfig, Settings
from .content_source import TableContentSource
from .core.notifications import ChangeNotificationRelay
from .core.publisher import PublishResult, PublishStateMachine
from .data.models import (
    ContentChangeEvent,
    DocumentStatus,
    ExternalRecord,
    RecordRef,
    RecordStatus,
)
from .errors import (
    ConfigurationError,
    ContentBridgeError,
    InvalidTransitionError,
    RecordNotFoundError,
    TransitionFailedError,
    TransportError,
)
from .integrations.airtable import AirtableClient

__all__ = [
    "AirtableClient",
    "AirtableConfig",
    "ChangeNotificationRelay",
    "ConfigurationError",
    "ContentBridgeError",
    "ContentChangeEvent",
    "DocumentStatus",
    "ExternalRecord",
    "InvalidTransitionError",
    "PublishResult",
    "PublishStateMachine",
    "RecordNotFoundError",
    "RecordRef",
    "RecordStatus",
    "Settings",
    "TableContentSource",
    "TransitionFailedError",
    "TransportError",
]
