"""
Servicios del motor operativo: tickets, housekeeping, minibar y dispatch
"""

from .ticket_lifecycle import TicketLifecycleManager, SLAStatus, evaluate, sla_hours
from .cleaning_assignments import CleaningAssignmentCoordinator
from .consumption_ledger import ConsumptionLedger
from .auto_dispatcher import AutoDispatcher, DispatchScheduler, ELIGIBLE_DEPARTMENTS
from .notifications import SideEffects, SideEffectRunner, get_side_effects

__all__ = [
    "TicketLifecycleManager",
    "SLAStatus",
    "evaluate",
    "sla_hours",
    "CleaningAssignmentCoordinator",
    "ConsumptionLedger",
    "AutoDispatcher",
    "DispatchScheduler",
    "ELIGIBLE_DEPARTMENTS",
    "SideEffects",
    "SideEffectRunner",
    "get_side_effects",
]
