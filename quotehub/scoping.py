# quotehub/scoping.py
"""Tenant scoping for every read and write the services perform."""

from dataclasses import dataclass
from typing import Optional

from quotehub.errors import ForbiddenError, NotFoundError


@dataclass(frozen=True)
class CallerContext:
    """Who is calling, as established by the upstream auth layer."""
    user_id: Optional[str]
    organization_id: int


class ScopedRepository:
    """Session wrapper bound to exactly one organization.

    Only models carrying an ``organization_id`` column can be queried
    through it, and every query is filtered on that column.
    """

    def __init__(self, session, organization_id):
        if organization_id is None:
            raise ForbiddenError('An organization context is required')
        self.session = session
        self.organization_id = organization_id

    def query(self, model):
        return self.session.query(model).filter(
            model.organization_id == self.organization_id
        )

    def get(self, model, object_id, label=None):
        obj = self.query(model).filter(model.id == object_id).one_or_none()
        if obj is None:
            name = label or model.__name__
            raise NotFoundError(f'{name} not found', context={'id': object_id})
        return obj

    def add(self, obj):
        obj.organization_id = self.organization_id
        self.session.add(obj)
        return obj

    def delete(self, obj):
        if obj.organization_id != self.organization_id:
            raise ForbiddenError('Object belongs to another organization')
        self.session.delete(obj)
