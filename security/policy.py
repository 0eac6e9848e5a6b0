"""
Authorization policy.

Every permission decision in the service goes through this module. Rules are a
table from action to the roles that may perform it; anything not listed is
denied. Ownership rules (the caller must own the store) are evaluated on top
of the role check. Profile, password and refresh actions take no target id:
their routes only ever operate on the user the token belongs to.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from core.exceptions import AuthenticationError, AuthorizationError, InvalidOwner
from models.user import Role


class Action(str, enum.Enum):
    REGISTER = "register"
    LOGIN = "login"
    REFRESH_TOKEN = "refresh_token"
    VIEW_PROFILE = "view_profile"
    UPDATE_PROFILE = "update_profile"
    CHANGE_PASSWORD = "change_password"
    LIST_USERS = "list_users"
    CREATE_STORE = "create_store"
    ADMIN_CREATE_STORE = "admin_create_store"
    ADMIN_LIST_STORES = "admin_list_stores"
    UPDATE_STORE = "update_store"
    DELETE_STORE = "delete_store"
    LIST_STORES = "list_stores"
    VIEW_STORE = "view_store"
    VIEW_STORE_AVERAGE = "view_store_average"
    SUBMIT_RATING = "submit_rating"
    VIEW_STORE_RATINGS = "view_store_ratings"
    LIST_OWNER_RATINGS = "list_owner_ratings"
    RESPOND_TO_RATING = "respond_to_rating"


@dataclass(frozen=True)
class Principal:
    id: int
    role: Role

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(id=user.id, role=Role(user.role))


ANY_ROLE: FrozenSet[Role] = frozenset(Role)
ADMIN_ONLY: FrozenSet[Role] = frozenset({Role.ADMIN})

# None => public (no principal needed)
RULES: Dict[Action, Optional[FrozenSet[Role]]] = {
    Action.REGISTER: None,
    Action.LOGIN: None,
    Action.LIST_STORES: None,
    Action.VIEW_STORE: None,
    Action.VIEW_STORE_AVERAGE: None,
    Action.REFRESH_TOKEN: ANY_ROLE,
    Action.VIEW_PROFILE: ANY_ROLE,
    Action.UPDATE_PROFILE: ANY_ROLE,
    Action.CHANGE_PASSWORD: ANY_ROLE,
    Action.VIEW_STORE_RATINGS: ANY_ROLE,
    Action.LIST_USERS: ADMIN_ONLY,
    Action.ADMIN_CREATE_STORE: ADMIN_ONLY,
    Action.ADMIN_LIST_STORES: ADMIN_ONLY,
    Action.UPDATE_STORE: ADMIN_ONLY,
    Action.DELETE_STORE: ADMIN_ONLY,
    Action.CREATE_STORE: frozenset({Role.ADMIN, Role.OWNER}),
    Action.SUBMIT_RATING: frozenset({Role.USER}),
    Action.LIST_OWNER_RATINGS: frozenset({Role.OWNER}),
    Action.RESPOND_TO_RATING: frozenset({Role.OWNER}),
}

# Actions on a resource that must belong to the caller
OWNERSHIP_REQUIRED = frozenset({Action.RESPOND_TO_RATING})

DENIAL_MESSAGES = {
    Action.SUBMIT_RATING: "Only regular users can submit ratings",
    Action.CREATE_STORE: "Only admins and store owners can create stores",
    Action.LIST_OWNER_RATINGS: "Requires store owner access",
    Action.RESPOND_TO_RATING: "Requires store owner access",
}


def is_public(action: Action) -> bool:
    return action in RULES and RULES[action] is None


def is_allowed(
    principal: Optional[Principal],
    action: Action,
    *,
    owner_id: Optional[int] = None,
) -> bool:
    if action not in RULES:
        return False
    roles = RULES[action]
    if roles is None:
        return True
    if principal is None or principal.role not in roles:
        return False
    if action in OWNERSHIP_REQUIRED and owner_id is not None and owner_id != principal.id:
        return False
    return True


def authorize(
    principal: Optional[Principal],
    action: Action,
    *,
    owner_id: Optional[int] = None,
) -> None:
    if is_allowed(principal, action, owner_id=owner_id):
        return
    if principal is None and not is_public(action):
        raise AuthenticationError()
    roles = RULES.get(action)
    if roles == ADMIN_ONLY:
        raise AuthorizationError("Requires admin access")
    raise AuthorizationError(DENIAL_MESSAGES.get(action, "Not authorized to perform this action"))


def resolve_store_owner(
    principal: Principal,
    requested_owner_id: Optional[int],
    lookup_role: Callable[[int], Optional[Role]],
) -> int:
    """Decide which user owns a store being created.

    Owners always own what they create. Admins must name an existing user whose
    role is owner; ``lookup_role`` returns that user's role or None if missing.
    """
    authorize(principal, Action.CREATE_STORE)
    if principal.role == Role.OWNER:
        if requested_owner_id is not None and requested_owner_id != principal.id:
            raise InvalidOwner("Store owners can only create stores for themselves")
        return principal.id

    if requested_owner_id is None:
        raise InvalidOwner("Owner ID is required")
    role = lookup_role(requested_owner_id)
    if role is None:
        raise InvalidOwner("Invalid owner ID")
    if role != Role.OWNER:
        raise InvalidOwner("User is not a store owner")
    return requested_owner_id
