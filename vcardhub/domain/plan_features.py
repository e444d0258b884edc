from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from vcardhub.domain.enums import ResourceKind


_NUMBER_RE = re.compile(r'\d+')


@dataclass(frozen=True)
class FeatureRule:
    keyword: str
    exclude_keyword: Optional[str] = None


# How each kind is recognized in a plan's human-readable feature list,
# e.g. "Up to 5 vCards" or "Unlimited projects".
FEATURE_RULES: Mapping[str, FeatureRule] = {
    ResourceKind.VCARD: FeatureRule('vcard', exclude_keyword='block'),
    ResourceKind.PROJECT: FeatureRule('project'),
    ResourceKind.PIXEL: FeatureRule('pixel'),
    ResourceKind.CUSTOM_DOMAIN: FeatureRule('custom domain'),
}


def normalize_features(raw: Any) -> List[str]:
    """Plans store features as a JSON list; older rows hold a JSON string."""

    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(item) for item in raw if item is not None]


def find_feature(features: Iterable[str], rule: FeatureRule) -> Optional[str]:
    for feature in features:
        text = feature.lower()
        if rule.keyword not in text:
            continue
        if rule.exclude_keyword and rule.exclude_keyword in text:
            continue
        return feature
    return None


def limit_from_features(features: Any, kind: str, default: int) -> int:
    """Resolve the plan limit for `kind` from a feature list.

    "unlimited" anywhere in the matching feature gives -1, otherwise the
    first number in it. Falls back to `default` when nothing matches.
    """

    rule = FEATURE_RULES.get(kind)
    if rule is None:
        return default

    feature = find_feature(normalize_features(features), rule)
    if feature is None:
        return default

    if 'unlimited' in feature.lower():
        return -1

    match = _NUMBER_RE.search(feature)
    return int(match.group(0)) if match else default
