"""Plan limit providers.

A provider answers "how many instances of this kind does the owner have,
and how many may they have" (`max = -1` for unlimited). Limits are read
from the owner's plan at request time, never hard-coded in the engine.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy import select

from vcardhub.domain.entitlement import UNLIMITED
from vcardhub.domain.enums import ResourceKind, SubscriptionStatus
from vcardhub.domain.errors import PlanLimitUnavailable
from vcardhub.domain.plan_features import limit_from_features
from vcardhub.extensions import db
from vcardhub.models import Plan, Subscription
from vcardhub.services.resource_catalog import ResourceCatalog


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanLimit:
    kind: str
    current: int
    max: int

    @property
    def is_unlimited(self) -> bool:
        return self.max == UNLIMITED

    @property
    def allows_another(self) -> bool:
        return self.is_unlimited or self.current < self.max

    def to_dict(self) -> dict:
        return {'current': self.current, 'max': self.max}


class PlanLimitProvider:
    def get(self, owner_id: int, kind: str) -> PlanLimit:
        raise NotImplementedError


class StaticPlanLimitProvider(PlanLimitProvider):
    """Fixed per-kind maxima; counts still come from the catalog."""

    def __init__(self, limits: Mapping[str, int], catalog: ResourceCatalog, default: int = 0):
        self._limits = dict(limits)
        self._catalog = catalog
        self._default = default

    def get(self, owner_id: int, kind: str) -> PlanLimit:
        return PlanLimit(kind, self._catalog.count(owner_id, kind), self._limits.get(kind, self._default))


class SubscriptionPlanLimitProvider(PlanLimitProvider):
    """Limits derived from the owner's active subscription plan.

    Owners without an active subscription fall back to the default plan
    (by name, then any plan flagged `is_default`).
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        defaults: Mapping[str, int],
        custom_domain_tiers: Mapping[str, int],
        default_plan_name: str = 'Free',
    ):
        self._catalog = catalog
        self._defaults = dict(defaults)
        self._domain_tiers = {str(k).lower(): int(v) for k, v in custom_domain_tiers.items()}
        self._default_plan_name = default_plan_name

    def current_plan(self, owner_id: int) -> Optional[Plan]:
        stmt = (
            select(Plan)
            .join(Subscription, Subscription.plan_id == Plan.id)
            .where(Subscription.user_id == owner_id, Subscription.status == SubscriptionStatus.ACTIVE)
            .order_by(Subscription.start_date.desc(), Subscription.id.desc())
            .limit(1)
        )
        plan = db.session.execute(stmt).scalars().first()
        if plan is not None:
            return plan

        fallback = db.session.execute(
            select(Plan).where(Plan.name == self._default_plan_name, Plan.is_active.is_(True))
        ).scalars().first()
        if fallback is not None:
            return fallback

        return db.session.execute(
            select(Plan).where(Plan.is_default.is_(True), Plan.is_active.is_(True))
        ).scalars().first()

    def max_for(self, plan: Plan, kind: str) -> int:
        default = int(self._defaults.get(kind, 0))
        if kind == ResourceKind.CUSTOM_DOMAIN:
            return self._domain_tiers.get((plan.name or '').lower(), default)
        return limit_from_features(plan.features, kind, default)

    def get(self, owner_id: int, kind: str) -> PlanLimit:
        plan = self.current_plan(owner_id)
        if plan is None:
            logger.error('No plan resolvable for user %s (default plan %r missing)', owner_id, self._default_plan_name)
            raise PlanLimitUnavailable('Subscription plan could not be resolved')

        return PlanLimit(kind, self._catalog.count(owner_id, kind), self.max_for(plan, kind))
