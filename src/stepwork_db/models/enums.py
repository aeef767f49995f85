"""Database-level enumerations for walk sessions."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a walk session.

    Transitions:
        in_progress -> step_complete (walker reached the end of the step)
        step_complete -> completed   (reflection generated, coins awarded)
        in_progress -> completed     (user ends the walk early)
    """

    IN_PROGRESS = "in_progress"
    STEP_COMPLETE = "step_complete"
    COMPLETED = "completed"
