"""Role-gated status transitions for submissions.

The legal moves are a fixed table keyed by (role, action, current status).
Write permissions are role-exclusive: a superadmin cannot perform an admin's
``submit``, and vice versa. Everything not in the table is rejected; nothing
is ever a silent no-op.
"""

import enum
from dataclasses import dataclass

from solardesk.exceptions import TransitionError
from solardesk.models.submission import Submission, SubmissionStatus


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Action(str, enum.Enum):
    SUBMIT = "submit"
    SITE_HOLD = "site-hold"
    RELEASE = "release"
    APPROVE = "approve"


S = SubmissionStatus

# States a hold can be placed on, and so the states a release may restore.
HOLDABLE = frozenset({S.SITE_PUBLISH, S.SEND_TO_HQ_APPROVAL})

# Where a release lands when the record carries no usable prior status.
RELEASE_DEFAULTS = {
    Role.ADMIN: S.SITE_PUBLISH,
    Role.SUPERADMIN: S.SEND_TO_HQ_APPROVAL,
}

# (role, action, current) -> new status. None marks a release, resolved from
# the record's previous status.
TRANSITIONS: dict[tuple[Role, Action, SubmissionStatus], SubmissionStatus | None] = {
    (Role.USER, Action.SUBMIT, S.DRAFT): S.SITE_PUBLISH,
    (Role.ADMIN, Action.SITE_HOLD, S.SITE_PUBLISH): S.SITE_HOLD,
    (Role.ADMIN, Action.RELEASE, S.SITE_HOLD): None,
    (Role.ADMIN, Action.SUBMIT, S.SITE_PUBLISH): S.SEND_TO_HQ_APPROVAL,
    (Role.SUPERADMIN, Action.APPROVE, S.SEND_TO_HQ_APPROVAL): S.HQ_APPROVED,
    (Role.SUPERADMIN, Action.SITE_HOLD, S.SEND_TO_HQ_APPROVAL): S.SITE_HOLD,
    (Role.SUPERADMIN, Action.RELEASE, S.SITE_HOLD): None,
}

_REJECTION_MESSAGES = {
    Role.USER: "Users can only submit Draft records",
    Role.ADMIN: "Invalid status transition for admin",
    Role.SUPERADMIN: "Invalid status transition for superadmin",
}

# Statuses each role works on in its dashboard. Superadmins additionally see
# HQ Approved records, but only when they ask for them.
_DEFAULT_VISIBLE = {
    Role.USER: (S.DRAFT,),
    Role.ADMIN: (S.SITE_PUBLISH, S.SITE_HOLD),
    Role.SUPERADMIN: (S.SEND_TO_HQ_APPROVAL, S.SITE_HOLD),
}
_REQUESTABLE = {
    Role.USER: (S.DRAFT,),
    Role.ADMIN: (S.SITE_PUBLISH, S.SITE_HOLD),
    Role.SUPERADMIN: (S.SEND_TO_HQ_APPROVAL, S.SITE_HOLD, S.HQ_APPROVED),
}


@dataclass(frozen=True)
class Actor:
    """Who is asking: identity asserted by the gateway, and their role."""

    id: str
    role: Role


@dataclass(frozen=True)
class Transition:
    """An accepted status change, before or after it is applied."""

    role: Role
    action: Action
    from_status: SubmissionStatus
    to_status: SubmissionStatus
    records_submitter: bool = False

    @property
    def previous_status(self) -> SubmissionStatus:
        """Value stored in previous_status once applied (always the old status)."""
        return self.from_status


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise TransitionError(f"Unknown {label}: {value!r}") from None


def resolve_transition(
    current: SubmissionStatus,
    previous: SubmissionStatus | None,
    role: Role | str,
    action: Action | str,
) -> Transition:
    """Work out the result of ``action`` by ``role`` on a record in ``current``.

    Raises:
        TransitionError: the combination is not allowed.
    """
    role = _coerce(Role, role, "role")
    action = _coerce(Action, action, "action")
    current = _coerce(SubmissionStatus, current, "status")
    if previous is not None and not isinstance(previous, SubmissionStatus):
        try:
            previous = SubmissionStatus(previous)
        except ValueError:
            previous = None

    if current == S.HQ_APPROVED:
        raise TransitionError("HQ Approved records cannot be modified")
    if role == Role.ADMIN and current == S.SEND_TO_HQ_APPROVAL:
        raise TransitionError("Cannot modify records already sent to HQ")

    key = (role, action, current)
    if key not in TRANSITIONS:
        raise TransitionError(_REJECTION_MESSAGES[role])

    target = TRANSITIONS[key]
    if target is None:
        target = previous if previous in HOLDABLE else RELEASE_DEFAULTS[role]

    return Transition(
        role=role,
        action=action,
        from_status=current,
        to_status=target,
        records_submitter=role == Role.USER,
    )


def apply_transition(
    submission: Submission,
    role: Role | str,
    action: Action | str,
    actor_id: str | None = None,
) -> Transition:
    """Validate and apply a transition to ``submission`` in place.

    The record is untouched when the transition is rejected.
    """
    transition = resolve_transition(
        submission.status, submission.previous_status, role, action
    )
    submission.previous_status = transition.previous_status
    submission.status = transition.to_status
    if transition.records_submitter and not submission.submitted_by:
        submission.submitted_by = actor_id
    return transition


def allowed_actions(
    role: Role | str,
    current: SubmissionStatus,
    previous: SubmissionStatus | None = None,
) -> list[Action]:
    """Actions ``role`` may take on a record in ``current``."""
    allowed = []
    for action in Action:
        try:
            resolve_transition(current, previous, role, action)
        except TransitionError:
            continue
        allowed.append(action)
    return allowed


def visible_statuses(role: Role | str, requested: str | None = None) -> list[SubmissionStatus]:
    """Statuses a dashboard query for ``role`` is limited to.

    A requested status outside what the role may see is ignored.
    """
    role = Role(role)
    if requested and requested != "all":
        for status in _REQUESTABLE[role]:
            if status.value == requested:
                return [status]
    return list(_DEFAULT_VISIBLE[role])


