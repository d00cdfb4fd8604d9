"""Ticket domain models and services."""

from .models import UNSET, Ticket, TicketFilters, TicketPage, TicketPatch
from .service import TicketService
from .state import StatusChange, TicketStateMachine, TicketStatus

__all__ = [
    "UNSET",
    "StatusChange",
    "Ticket",
    "TicketFilters",
    "TicketPage",
    "TicketPatch",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
]
