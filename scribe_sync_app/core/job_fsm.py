"""Job lifecycle transition rules."""

from scribe_sync_app.core.models import JobState

_ALLOWED_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.SUBMITTED: {JobState.QUEUED},
    JobState.QUEUED: {JobState.QUEUED, JobState.RUNNING, JobState.COMPLETED, JobState.FAILED},
    JobState.RUNNING: {JobState.RUNNING, JobState.COMPLETED, JobState.FAILED},
    JobState.COMPLETED: set(),
    JobState.FAILED: set(),
}


def allowed_next_states(state: JobState) -> list[JobState]:
    """Return deterministically ordered allowed successors for a state."""
    return sorted(_ALLOWED_TRANSITIONS.get(state, set()), key=lambda s: s.value)


def can_transition(old_state: JobState, new_state: JobState) -> bool:
    return new_state in _ALLOWED_TRANSITIONS.get(old_state, set())
