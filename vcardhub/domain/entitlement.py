"""Plan entitlement engine.

Decides which resource instances stay active when an owner has more
instances of a kind than their plan allows. Classification is positional:
callers pass instances oldest first and the engine marks the ones past the
limit as disabled. The result is never persisted; it is recomputed for every
listing from a (resources, limit) snapshot.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from vcardhub.domain.enums import ResourceKind


UNLIMITED = -1


@dataclass(frozen=True)
class ResourceInstance:
    """Kind-tagged view of an owned resource.

    `payload` holds the kind-specific fields (vCard name, domain status...)
    and is passed through untouched.
    """

    kind: str
    id: int
    owner_id: int
    created_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EntitlementDecision:
    resource_id: int
    is_disabled: bool


class Policy:
    """Base entitlement policy. Subclasses decide one position at a time."""

    name = 'base'

    def is_entitled(self, index: int, limit: int) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f'<{type(self).__name__}>'


class StandardPolicy(Policy):
    """The first `limit` instances are entitled; with limit 0 nothing is."""

    name = 'standard'

    def is_entitled(self, index: int, limit: int) -> bool:
        return index < limit


class GrandfatheredPolicy(Policy):
    """The oldest instance is always entitled, then the standard rule applies.

    Disabling a custom domain takes a published site offline, so the first
    one survives even a downgrade to a plan with no domains.
    """

    name = 'grandfathered'

    def is_entitled(self, index: int, limit: int) -> bool:
        return index == 0 or index < limit


STANDARD = StandardPolicy()
GRANDFATHERED = GrandfatheredPolicy()

POLICY_BY_KIND: Dict[str, Policy] = {
    ResourceKind.VCARD: STANDARD,
    ResourceKind.PROJECT: STANDARD,
    ResourceKind.PIXEL: STANDARD,
    ResourceKind.CUSTOM_DOMAIN: GRANDFATHERED,
}


def policy_for(kind: str) -> Policy:
    try:
        return POLICY_BY_KIND[kind]
    except KeyError:
        raise ValueError(f'No entitlement policy for resource kind {kind!r}') from None


def sort_key(resource: ResourceInstance) -> Tuple[datetime, int]:
    return (resource.created_at, resource.id)


def sort_for_classification(resources: Iterable[ResourceInstance]) -> List[ResourceInstance]:
    """Order instances the way `classify` expects: oldest first, ties by id."""

    return sorted(resources, key=sort_key)


def classify(
    resources: Sequence[ResourceInstance],
    limit: int,
    policy: Policy,
) -> List[Tuple[ResourceInstance, bool]]:
    """Pair each instance with its `is_disabled` flag.

    `resources` must already be sorted by `sort_for_classification`; the
    function does not reorder its input. A limit of -1 entitles everything.
    """

    if limit < UNLIMITED:
        raise ValueError(f'Invalid plan limit {limit}; use -1 for unlimited')

    if limit == UNLIMITED:
        return [(resource, False) for resource in resources]

    return [
        (resource, not policy.is_entitled(index, limit))
        for index, resource in enumerate(resources)
    ]


def decisions(classified: Iterable[Tuple[ResourceInstance, bool]]) -> List[EntitlementDecision]:
    return [EntitlementDecision(resource.id, disabled) for resource, disabled in classified]


def entitled_count(count: int, limit: int, policy: Policy) -> int:
    """How many of `count` instances a plan keeps active."""

    if limit == UNLIMITED:
        return count
    return sum(1 for index in range(count) if policy.is_entitled(index, limit))
