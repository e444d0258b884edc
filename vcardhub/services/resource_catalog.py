"""Per-kind listings of an owner's resources.

Listings come back oldest first, ties broken by id, which is the order
the entitlement engine expects.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List

from sqlalchemy import func, select

from vcardhub.domain.entitlement import ResourceInstance
from vcardhub.domain.enums import ResourceKind
from vcardhub.extensions import db
from vcardhub.models import CustomDomain, Pixel, Project, VCard


class ResourceCatalog:
    def list(self, owner_id: int, kind: str) -> List[ResourceInstance]:
        raise NotImplementedError

    def count(self, owner_id: int, kind: str) -> int:
        raise NotImplementedError


def _vcard_payload(vcard: VCard) -> Dict[str, Any]:
    return {
        'id': vcard.id,
        'name': vcard.name,
        'url': vcard.url,
        'projectId': vcard.project_id,
        'isActive': vcard.is_active,
        'createdAt': vcard.created_at.isoformat(),
    }


def _project_payload(project: Project) -> Dict[str, Any]:
    return {
        'id': project.id,
        'name': project.name,
        'description': project.description,
        'createdAt': project.created_at.isoformat(),
    }


def _pixel_payload(pixel: Pixel) -> Dict[str, Any]:
    return {
        'id': pixel.id,
        'name': pixel.name,
        'vcardId': pixel.vcard_id,
        'createdAt': pixel.created_at.isoformat(),
    }


class SqlResourceCatalog(ResourceCatalog):
    """Catalog backed by the application database session."""

    _payloads: Dict[str, Callable[[Any], Dict[str, Any]]] = {
        ResourceKind.VCARD: _vcard_payload,
        ResourceKind.PROJECT: _project_payload,
        ResourceKind.PIXEL: _pixel_payload,
        ResourceKind.CUSTOM_DOMAIN: CustomDomain.to_dict,
    }

    def _statement(self, owner_id: int, kind: str):
        if kind == ResourceKind.VCARD:
            return select(VCard).where(VCard.user_id == owner_id), VCard
        if kind == ResourceKind.PROJECT:
            return select(Project).where(Project.user_id == owner_id), Project
        if kind == ResourceKind.PIXEL:
            stmt = select(Pixel).join(VCard, Pixel.vcard_id == VCard.id).where(VCard.user_id == owner_id)
            return stmt, Pixel
        if kind == ResourceKind.CUSTOM_DOMAIN:
            return select(CustomDomain).where(CustomDomain.user_id == owner_id), CustomDomain
        raise ValueError(f'Unknown resource kind {kind!r}')

    def list(self, owner_id: int, kind: str) -> List[ResourceInstance]:
        stmt, model = self._statement(owner_id, kind)
        rows = db.session.execute(stmt.order_by(model.created_at.asc(), model.id.asc())).scalars().all()
        to_payload = self._payloads[kind]
        return [
            ResourceInstance(
                kind=kind,
                id=row.id,
                owner_id=owner_id,
                created_at=row.created_at,
                payload=to_payload(row),
            )
            for row in rows
        ]

    def count(self, owner_id: int, kind: str) -> int:
        stmt, _ = self._statement(owner_id, kind)
        counted = select(func.count()).select_from(stmt.subquery())
        return int(db.session.execute(counted).scalar() or 0)
