# quotehub/auth.py
"""Caller context for the organization-scoped blueprints.

Token verification happens upstream; by the time a request reaches us
the authenticated user and organization are passed along as headers.
"""

from flask import g, request

from quotehub import db
from quotehub.errors import ForbiddenError
from quotehub.models import Organization
from quotehub.scoping import CallerContext

USER_HEADER = 'X-User-Id'
ORG_HEADER = 'X-Organization-Id'


def load_caller() -> CallerContext:
    raw_org = request.headers.get(ORG_HEADER, '').strip()
    if not raw_org.isdigit():
        raise ForbiddenError('User not associated with any organization')
    org = db.session.get(Organization, int(raw_org))
    if org is None:
        raise ForbiddenError('User not associated with any organization')
    g.caller = CallerContext(
        user_id=request.headers.get(USER_HEADER) or None,
        organization_id=org.id,
    )
    return g.caller


def require_caller():
    """``before_request`` hook for blueprints that need a tenant."""
    load_caller()
