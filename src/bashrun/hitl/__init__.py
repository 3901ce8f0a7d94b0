"""Human-in-the-Loop support for bashrun.

Commands classified as "ask" are held until the user approves them.
The calling layer owns that state through a ConfirmationGate.
"""

from bashrun.hitl.confirmation import (
    DEFAULT_SESSION_ID,
    ConfirmationGate,
    ConfirmationState,
    ConfirmationStore,
    PendingConfirmation,
)

__all__ = [
    "DEFAULT_SESSION_ID",
    "ConfirmationGate",
    "ConfirmationState",
    "ConfirmationStore",
    "PendingConfirmation",
]
