class RecruitmentError(Exception):
    """Base exception for the recruitment timeline service."""

    pass


class TimelineNotFoundError(RecruitmentError):
    """Raised when an entity has no registered timeline."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Timeline not found for entity: {entity_id}")


class PhaseNotFoundError(RecruitmentError):
    """Raised when a phase id does not match any phase of the timeline."""

    def __init__(self, entity_id: str, phase_id: str):
        self.entity_id = entity_id
        self.phase_id = phase_id
        super().__init__(f"Phase not found: {phase_id}")


class OverlappingPhaseError(RecruitmentError):
    """Raised when overlap rejection is on and a window collides with another phase."""

    def __init__(self, entity_id: str, role_type: str, conflicting_phase_id: str):
        self.entity_id = entity_id
        self.role_type = role_type
        self.conflicting_phase_id = conflicting_phase_id
        super().__init__(
            f"Phase window for role '{role_type}' overlaps phase {conflicting_phase_id}"
        )
