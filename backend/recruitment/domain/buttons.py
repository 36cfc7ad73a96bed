"""Recruitment button descriptors.

Maps a RoleStatus to the descriptor the public pages bind to a button:

    status     enabled  css_state   action_handle
    active     True     "active"    open_recruitment_form(form_id)
    inactive   False    "inactive"  None
    expired    False    "expired"   None
    full       False    "full"      None
    fallback   False    "disabled"  None   (no timeline configured)
"""

from recruitment.schemas.timeline import (
    ButtonDescriptor,
    OpenFormAction,
    RecruitmentStatus,
    RoleStatus,
    RoleType,
)

BUTTON_TEXTS: dict[str, str] = {
    "crew": "Join Project",
    "volunteer": "Be a Volunteer",
    "participant": "Join Us",
}

DEFAULT_BUTTON_TEXT = "Apply"

FALLBACK_TOOLTIP = "Recruitment not available"

_DISABLED_STATES = {
    RecruitmentStatus.INACTIVE: "inactive",
    RecruitmentStatus.EXPIRED: "expired",
    RecruitmentStatus.FULL: "full",
}


def _role_key(role_type: RoleType | str) -> str:
    return role_type.value if isinstance(role_type, RoleType) else str(role_type)


def button_text(role_type: RoleType | str) -> str:
    return BUTTON_TEXTS.get(_role_key(role_type), DEFAULT_BUTTON_TEXT)


def build_button(entity_id: str, role_type: RoleType | str, role_status: RoleStatus) -> ButtonDescriptor:
    """Build the button descriptor for one (entity, role) pair.

    Args:
        entity_id: Entity the button belongs to
        role_type: Role the button recruits for (unknown roles get "Apply")
        role_status: Output of get_role_status for the same pair

    Returns:
        ButtonDescriptor; only the active status carries an action handle.
    """
    role = _role_key(role_type)
    base = {
        "text": button_text(role),
        "role_type": role,
        "entity_id": entity_id,
    }

    if not role_status.timeline_configured:
        return ButtonDescriptor(**base, enabled=False, css_state="disabled", tooltip=FALLBACK_TOOLTIP)

    if role_status.status == RecruitmentStatus.ACTIVE:
        form_id = role_status.phase.form_id if role_status.phase else None
        return ButtonDescriptor(
            **base,
            enabled=True,
            css_state="active",
            tooltip=role_status.message,
            form_reference=form_id,
            action_handle=OpenFormAction(entity_id=entity_id, role_type=role, form_id=form_id),
        )

    css_state = _DISABLED_STATES.get(role_status.status)
    if css_state is None:
        return ButtonDescriptor(**base, enabled=False, css_state="disabled", tooltip=FALLBACK_TOOLTIP)

    return ButtonDescriptor(**base, enabled=False, css_state=css_state, tooltip=role_status.message)
