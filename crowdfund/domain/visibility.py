"""
Field visibility policy.

`visible(policy, state, caller)` is a pure predicate: it decides whether a
caller may see a field governed by `policy` on a record described by
`state`. Accessors call it explicitly, and only when a filtered
projection was asked for; unfiltered projections never consult it.

Policies:
- PUBLIC: visible to everyone (identifiers, timestamps, public attributes)
- OWNER: visible to the owning user and admins
- STATUS: visible when the project is PUBLIC, to its creator, and to admins
- CHAIN: visible to the applicant, to the creator of the project reached
  through the task, and to admins
- NEVER: never part of a filtered projection
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from crowdfund.domain.enums import ProjectStatus

if TYPE_CHECKING:
    from crowdfund.domain.identity import Identity


class Policy(str, Enum):
    PUBLIC = "PUBLIC"
    OWNER = "OWNER"
    STATUS = "STATUS"
    CHAIN = "CHAIN"
    NEVER = "NEVER"


@dataclass(frozen=True)
class RecordState:
    """
    The parts of a record a visibility decision may depend on.

    owner_id is the user owning the record (the user itself, a session's
    user, a project's creator, an application's applicant). chain_owner_id
    is the creator at the end of an ownership chain, when one applies.
    """

    owner_id: str | None = None
    status: str | None = None
    chain_owner_id: str | None = None


BASE_FIELDS = ("id", "created_at", "updated_at")


def _with_base(policies: dict[str, Policy]) -> dict[str, Policy]:
    return {**{name: Policy.PUBLIC for name in BASE_FIELDS}, **policies}


FIELD_POLICIES: dict[str, dict[str, Policy]] = {
    "user": _with_base(
        {
            "fullname": Policy.PUBLIC,
            "mail": Policy.OWNER,
            "gender": Policy.PUBLIC,
            "role": Policy.PUBLIC,
            "password": Policy.NEVER,
        }
    ),
    "session": _with_base({"token": Policy.OWNER, "user_id": Policy.OWNER}),
    "project": _with_base(
        {
            name: Policy.STATUS
            for name in (
                "title",
                "description",
                "status",
                "money_goal",
                "money_pledged",
                "lat",
                "lon",
                "creator_id",
                "category_id",
            )
        }
    ),
    "category": _with_base({"name": Policy.PUBLIC, "image_id": Policy.PUBLIC}),
    "task": _with_base(
        {
            "title": Policy.PUBLIC,
            "description": Policy.PUBLIC,
            "supporter_goal": Policy.PUBLIC,
            "project_id": Policy.PUBLIC,
        }
    ),
    "application": _with_base(
        {
            "text": Policy.CHAIN,
            "accepted": Policy.PUBLIC,
            "user_id": Policy.CHAIN,
            "task_id": Policy.PUBLIC,
        }
    ),
    "image": _with_base({"extension": Policy.PUBLIC}),
}


def policy_for(entity: str, field: str) -> Policy:
    """Return the policy governing `field` on `entity`. Unknown fields are never visible."""
    return FIELD_POLICIES.get(entity, {}).get(field, Policy.NEVER)


def visible(policy: Policy, state: RecordState, caller: "Identity | None") -> bool:
    if policy is Policy.PUBLIC:
        return True
    if policy is Policy.NEVER or caller is None:
        return False
    if caller.is_admin:
        return True

    if policy is Policy.OWNER:
        return state.owner_id is not None and caller.id == state.owner_id
    if policy is Policy.STATUS:
        return state.status == ProjectStatus.PUBLIC.value or (
            state.owner_id is not None and caller.id == state.owner_id
        )
    if policy is Policy.CHAIN:
        return caller.id in {state.owner_id, state.chain_owner_id} - {None}

    return False
