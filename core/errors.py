# core/errors.py
"""
Terminal persistence errors.

Retry decisions never look at these classes: the retry loop inspects the
raw store error's signature and only raises one of these once it has
decided the outcome.
"""

from typing import Optional


RACE_CONDITION_USER_MESSAGE = (
    "We hit a temporary conflict while saving your transaction, please try again."
)
FATAL_USER_MESSAGE = (
    "We couldn't save your transaction right now. Please try again later."
)


class PersistenceError(Exception):
    error_type = "persistence"
    user_message = FATAL_USER_MESSAGE

    def __init__(self, reason: str, *, attempts: int = 1, user_id: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.attempts = attempts
        self.user_id = user_id


class PersistenceRaceConditionError(PersistenceError):
    """Display-id allocation kept colliding until the retry budget ran out."""

    error_type = "race_condition"
    user_message = RACE_CONDITION_USER_MESSAGE


class PersistenceFatalError(PersistenceError):
    """Any non-race failure: timeout, connectivity, auth, unrelated constraint."""

    error_type = "fatal"
