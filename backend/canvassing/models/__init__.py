from canvassing.models.prospect import Prospect
from canvassing.models.canvassing_cycle import CanvassingCycle, CycleStatus, ACTIVE_LIKE_STATUSES
from canvassing.models.message import Message, InteractionOutcome, ValidationStatus
from canvassing.models.cycle_status_log import CycleStatusLog
from canvassing.models.quality_check import QualityCheck

__all__ = [
    "Prospect", "CanvassingCycle", "CycleStatus", "ACTIVE_LIKE_STATUSES",
    "Message", "InteractionOutcome", "ValidationStatus",
    "CycleStatusLog", "QualityCheck",
]
