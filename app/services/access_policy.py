"""
Role -> operation policy.

Pure lookups only: a denied call is rejected here before any store access.
Ownership checks (a seller touching only their own listing) need the listing row and
live in the lifecycle service instead.
"""
from __future__ import annotations

from app.core.errors import AuthorizationError


class Role:
    SELLER = "seller"
    AGENT = "agent"
    ADMIN = "admin"
    ANONYMOUS = "anonymous"

    # roles that can hold credentials
    AUTHENTICATED = (SELLER, AGENT, ADMIN)


class Operation:
    SUBMIT_PROPERTY = "submit_property"
    ATTACH_IMAGE = "attach_image"
    SET_PRICING = "set_pricing"
    VERIFY_PROPERTY = "verify_property"
    RESERVE = "reserve"
    CANCEL_BOOKING = "cancel_booking"
    SUBMIT_PAYMENT = "submit_payment"
    VERIFY_PAYMENT = "verify_payment"
    CLOSE_SALE = "close_sale"
    VIEW_PUBLIC_LISTINGS = "view_public_listings"
    VIEW_OWN_LISTINGS = "view_own_listings"
    VIEW_OWN_BOOKINGS = "view_own_bookings"
    VIEW_AGENT_WORKSPACE = "view_agent_workspace"
    VIEW_PAYMENTS = "view_payments"
    SEND_ENQUIRY = "send_enquiry"
    RATE_AGENT = "rate_agent"
    MANAGE_AGENTS = "manage_agents"
    VIEW_REPORTS = "view_reports"


_STAFF = frozenset({Role.AGENT, Role.ADMIN})

_POLICY: dict[str, frozenset[str]] = {
    Operation.SUBMIT_PROPERTY: frozenset({Role.SELLER}),
    Operation.ATTACH_IMAGE: frozenset({Role.SELLER, Role.AGENT, Role.ADMIN}),
    Operation.SET_PRICING: _STAFF,
    Operation.VERIFY_PROPERTY: _STAFF,
    # buyers are members; listing ownership is not required
    Operation.RESERVE: frozenset({Role.SELLER}),
    Operation.SUBMIT_PAYMENT: frozenset({Role.SELLER}),
    Operation.CANCEL_BOOKING: _STAFF,
    Operation.VERIFY_PAYMENT: _STAFF,
    Operation.CLOSE_SALE: _STAFF,
    Operation.VIEW_PUBLIC_LISTINGS: frozenset({Role.SELLER, Role.AGENT, Role.ADMIN, Role.ANONYMOUS}),
    Operation.VIEW_OWN_LISTINGS: frozenset({Role.SELLER}),
    Operation.VIEW_OWN_BOOKINGS: frozenset({Role.SELLER}),
    Operation.VIEW_AGENT_WORKSPACE: _STAFF,
    Operation.VIEW_PAYMENTS: _STAFF,
    # enquiries are open to visitors, as on the public catalogue
    Operation.SEND_ENQUIRY: frozenset({Role.SELLER, Role.ANONYMOUS}),
    Operation.RATE_AGENT: frozenset({Role.SELLER}),
    Operation.MANAGE_AGENTS: frozenset({Role.ADMIN}),
    Operation.VIEW_REPORTS: frozenset({Role.ADMIN}),
}


def is_allowed(role: str, operation: str) -> bool:
    return role in _POLICY.get(operation, frozenset())


def authorize(role: str, operation: str) -> None:
    if not is_allowed(role, operation):
        raise AuthorizationError(
            f"Role '{role}' may not perform '{operation}'",
            details=[{"role": role, "operation": operation}],
        )
