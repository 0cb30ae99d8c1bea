"""Publishing core: status rules, state machine, transitions, references."""

from .notifications import ChangeNotificationRelay
from .publisher import PublishResult, PublishStateMachine
from .references import ReferenceField, resolve_references
from .status import resolve_record, route_read, visible_statuses
from .transitions import Transition, TransitionLog, TransitionStep

__all__ = [
    "ChangeNotificationRelay",
    "PublishResult",
    "PublishStateMachine",
    "ReferenceField",
    "Transition",
    "TransitionLog",
    "TransitionStep",
    "resolve_record",
    "resolve_references",
    "route_read",
    "visible_statuses",
]
