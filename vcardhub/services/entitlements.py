"""
Entitlement service: plan limits applied to real resource listings.

Every listing reads the plan limit and the resource list as one snapshot
and classifies once, so two instances are never judged against two
different limits observed moments apart (e.g. mid-upgrade).

Creation at the limit boundary is a check-then-insert race. `guarded_create`
closes it by locking the owner's `quota_locks` row for the resource kind
(SELECT ... FOR UPDATE) before counting, so concurrent creates from the same
owner serialize across processes. SQLite ignores FOR UPDATE, so creates are
also serialized in-process on a striped lock keyed by (owner, kind).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, List, Optional, Tuple, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from vcardhub.domain.entitlement import (
    EntitlementDecision,
    ResourceInstance,
    classify,
    entitled_count,
    policy_for,
)
from vcardhub.domain.enums import ResourceKind
from vcardhub.domain.errors import NotFoundError, PlanLimitExceeded
from vcardhub.extensions import db
from vcardhub.models import QuotaLock
from vcardhub.services.plan_limits import PlanLimit, PlanLimitProvider
from vcardhub.services.resource_catalog import ResourceCatalog


logger = logging.getLogger(__name__)

T = TypeVar('T')

_CREATE_LOCK_STRIPES = 64

_KIND_LABELS = {
    ResourceKind.VCARD: 'VCard',
    ResourceKind.PROJECT: 'Project',
    ResourceKind.PIXEL: 'Pixel',
    ResourceKind.CUSTOM_DOMAIN: 'Custom Domain',
}


@dataclass(frozen=True)
class EntitlementSnapshot:
    kind: str
    limit: PlanLimit
    resources: Tuple[ResourceInstance, ...]

    def classify(self) -> List[Tuple[ResourceInstance, bool]]:
        return classify(self.resources, self.limit.max, policy_for(self.kind))

    def decision_for(self, resource_id: int) -> Optional[EntitlementDecision]:
        for resource, disabled in self.classify():
            if resource.id == resource_id:
                return EntitlementDecision(resource.id, disabled)
        return None


def _begin_snapshot_read() -> None:
    """Start a REPEATABLE READ transaction on PostgreSQL when possible.

    Isolation can only be chosen at transaction start; if the request already
    has writes pending we keep its transaction and read within it.
    """

    session = db.session
    if db.engine.dialect.name != 'postgresql':
        return
    if session.in_transaction():
        if session.new or session.dirty or session.deleted:
            return
        session.commit()
    session.connection(execution_options={'isolation_level': 'REPEATABLE READ'})


class EntitlementService:
    def __init__(self, limits: PlanLimitProvider, catalog: ResourceCatalog):
        self.limits = limits
        self.catalog = catalog
        self._create_locks = tuple(Lock() for _ in range(_CREATE_LOCK_STRIPES))

    def snapshot(self, owner_id: int, kind: str) -> EntitlementSnapshot:
        _begin_snapshot_read()
        limit = self.limits.get(owner_id, kind)
        resources = tuple(self.catalog.list(owner_id, kind))
        return EntitlementSnapshot(kind=kind, limit=limit, resources=resources)

    def list_resources(self, owner_id: int, kind: str) -> List[Tuple[ResourceInstance, bool]]:
        return self.snapshot(owner_id, kind).classify()

    def is_disabled(self, owner_id: int, kind: str, resource_id: int) -> bool:
        decision = self.snapshot(owner_id, kind).decision_for(resource_id)
        if decision is None:
            raise NotFoundError(f'{_KIND_LABELS.get(kind, kind)} not found')
        return decision.is_disabled

    def usage(self, owner_id: int, kind: str) -> dict:
        limit = self.limits.get(owner_id, kind)
        payload = limit.to_dict()
        payload['active'] = entitled_count(limit.current, limit.max, policy_for(kind))
        payload['limitReached'] = not limit.allows_another
        return payload

    def _lock_quota(self, owner_id: int, kind: str) -> QuotaLock:
        stmt = (
            select(QuotaLock)
            .where(QuotaLock.user_id == owner_id, QuotaLock.resource_kind == kind)
            .with_for_update()
        )
        lock = db.session.execute(stmt).scalars().first()
        if lock is not None:
            return lock

        try:
            with db.session.begin_nested():
                db.session.add(QuotaLock(user_id=owner_id, resource_kind=kind))
        except IntegrityError:
            # Another request created the row first; lock theirs.
            logger.debug('quota lock row for user %s/%s created concurrently', owner_id, kind)

        return db.session.execute(stmt).scalars().one()

    def guarded_create(self, owner_id: int, kind: str, factory: Callable[[], T]) -> T:
        """Create a resource only if the owner's plan allows one more.

        `factory` runs while the quota row is locked and must commit the
        new resource (which also releases the lock).
        """

        with self._create_locks[hash((owner_id, kind)) % _CREATE_LOCK_STRIPES]:
            return self._create_locked(owner_id, kind, factory)

    def _create_locked(self, owner_id: int, kind: str, factory: Callable[[], T]) -> T:
        self._lock_quota(owner_id, kind)
        limit = self.limits.get(owner_id, kind)
        if not limit.allows_another:
            db.session.rollback()
            label = _KIND_LABELS.get(kind, kind)
            raise PlanLimitExceeded(
                f'{label} limit reached ({limit.current}/{limit.max})',
                kind=kind,
                current=limit.current,
                max=limit.max,
            )

        try:
            return factory()
        except Exception:
            db.session.rollback()
            raise
