"""Role-based access control and case standing.

A user acts on a case from one side: the issuing institution, the acquiring
institution, or the administrative centre. Standing is derived from the
user's institution and the transaction behind the case, and every ambiguity
is rejected.
"""

from enum import Enum

from dms.core.exceptions import AuthorizationError
from dms.models.institution import Institution, UserRole, Utilisateur
from dms.models.transaction import Transaction


class CaseSide(str, Enum):
    """Side a user acts from on a given case."""

    ISSUER = "ISSUER"
    ACQUIRER = "ACQUIRER"
    ADMIN = "ADMIN"


class Permission(str, Enum):
    """Case actions a role may be granted."""

    VIEW_CASE = "view_case"
    FLAG_TRANSACTION = "flag_transaction"
    INITIATE_CHARGEBACK = "initiate_chargeback"
    RESPOND_REPRESENTATION = "respond_representation"
    SECOND_PRESENTMENT = "second_presentment"
    REQUEST_ARBITRAGE = "request_arbitrage"
    DECIDE_ARBITRAGE = "decide_arbitrage"
    CANCEL_CHARGEBACK = "cancel_chargeback"
    POST_MESSAGE = "post_message"


# Role to permissions mapping
ROLE_PERMISSIONS: dict[UserRole, set[Permission]] = {
    UserRole.USER: {
        Permission.VIEW_CASE,
        Permission.FLAG_TRANSACTION,
        Permission.INITIATE_CHARGEBACK,
        Permission.RESPOND_REPRESENTATION,
        Permission.SECOND_PRESENTMENT,
        Permission.REQUEST_ARBITRAGE,
        Permission.CANCEL_CHARGEBACK,
        Permission.POST_MESSAGE,
    },
    UserRole.ADMIN: {
        # Admins have all permissions
        perm for perm in Permission
    },
}

# Which side of the transaction may exercise each case permission
CASE_ACTION_SIDES: dict[Permission, frozenset[CaseSide]] = {
    Permission.VIEW_CASE: frozenset(CaseSide),
    Permission.FLAG_TRANSACTION: frozenset(CaseSide),
    Permission.POST_MESSAGE: frozenset(CaseSide),
    Permission.REQUEST_ARBITRAGE: frozenset(CaseSide),
    Permission.INITIATE_CHARGEBACK: frozenset({CaseSide.ISSUER, CaseSide.ADMIN}),
    Permission.SECOND_PRESENTMENT: frozenset({CaseSide.ISSUER, CaseSide.ADMIN}),
    Permission.CANCEL_CHARGEBACK: frozenset({CaseSide.ISSUER, CaseSide.ADMIN}),
    Permission.RESPOND_REPRESENTATION: frozenset({CaseSide.ACQUIRER, CaseSide.ADMIN}),
    Permission.DECIDE_ARBITRAGE: frozenset({CaseSide.ADMIN}),
}


def has_permission(role: UserRole, permission: Permission) -> bool:
    """Check if a role has a specific permission."""
    return permission in ROLE_PERMISSIONS.get(role, set())


def is_admin(user: Utilisateur) -> bool:
    return user.role == UserRole.ADMIN


def resolve_case_side(
    user: Utilisateur,
    transaction: Transaction | None,
    institution: Institution | None,
) -> CaseSide:
    """Determine which side ``user`` stands on for a transaction.

    Args:
        user: Acting user
        transaction: Transaction behind the case
        institution: The user's institution row, None if it could not be found

    Returns:
        CaseSide of the user

    Raises:
        AuthorizationError: If standing cannot be established unambiguously
    """
    if not user.is_active:
        raise AuthorizationError("User account is deactivated")

    if is_admin(user):
        return CaseSide.ADMIN

    if user.institution_id is None:
        raise AuthorizationError("User must belong to an institution to act on a case")
    if institution is None or institution.id != user.institution_id:
        raise AuthorizationError("User institution could not be resolved")
    if not institution.enabled:
        raise AuthorizationError("User institution is disabled")
    if transaction is None:
        raise AuthorizationError("Case has no transaction; standing cannot be established")

    issuer_id = transaction.issuer_institution_id
    acquirer_id = transaction.acquirer_institution_id
    if issuer_id is None or acquirer_id is None:
        raise AuthorizationError("Transaction is missing its issuing or acquiring institution")
    if issuer_id == acquirer_id:
        raise AuthorizationError("Transaction has the same issuing and acquiring institution")

    if user.institution_id == issuer_id:
        return CaseSide.ISSUER
    if user.institution_id == acquirer_id:
        return CaseSide.ACQUIRER
    raise AuthorizationError("User's institution is not a party to this transaction")


def assert_case_action(
    user: Utilisateur,
    transaction: Transaction | None,
    permission: Permission,
    institution: Institution | None,
) -> CaseSide:
    """Check role permission and side standing for a case action.

    Returns:
        The side the user acts from
    """
    if not has_permission(user.role, permission):
        raise AuthorizationError(f"Permission '{permission.value}' is required for this action")

    side = resolve_case_side(user, transaction, institution)
    allowed = CASE_ACTION_SIDES.get(permission, frozenset({CaseSide.ADMIN}))
    if side not in allowed:
        raise AuthorizationError(
            f"The {side.value.lower()} side cannot perform '{permission.value}'"
        )
    return side
