import random
import unittest
from datetime import datetime, timedelta

from vcardhub.domain.entitlement import (
    GRANDFATHERED,
    STANDARD,
    GrandfatheredPolicy,
    ResourceInstance,
    StandardPolicy,
    classify,
    decisions,
    entitled_count,
    policy_for,
    sort_for_classification,
)
from vcardhub.domain.enums import ResourceKind


T0 = datetime(2024, 1, 1)


def instances(kind, names):
    return [
        ResourceInstance(kind=kind, id=i + 1, owner_id=7, created_at=T0 + timedelta(hours=i), payload={'name': name})
        for i, name in enumerate(names)
    ]


def disabled_names(classified):
    return [r.payload['name'] for r, disabled in classified if disabled]


class ClassificationScenarioTests(unittest.TestCase):
    def test_standard_policy_disables_newest_past_limit(self):
        vcards = instances(ResourceKind.VCARD, ['A', 'B', 'C'])
        result = classify(vcards, 2, policy_for(ResourceKind.VCARD))
        self.assertEqual([r.payload['name'] for r, d in result if not d], ['A', 'B'])
        self.assertEqual(disabled_names(result), ['C'])

    def test_grandfathered_policy_keeps_oldest_with_zero_limit(self):
        domains = instances(ResourceKind.CUSTOM_DOMAIN, ['A', 'B', 'C'])
        result = classify(domains, 0, policy_for(ResourceKind.CUSTOM_DOMAIN))
        self.assertEqual(disabled_names(result), ['B', 'C'])

    def test_standard_policy_with_zero_limit_disables_everything(self):
        pixels = instances(ResourceKind.PIXEL, ['A', 'B'])
        result = classify(pixels, 0, STANDARD)
        self.assertEqual(disabled_names(result), ['A', 'B'])

    def test_unlimited_entitles_everything(self):
        for policy in (STANDARD, GRANDFATHERED):
            result = classify(instances(ResourceKind.PROJECT, ['A', 'B', 'C', 'D']), -1, policy)
            self.assertEqual(disabled_names(result), [])

    def test_empty_input(self):
        self.assertEqual(classify([], 3, STANDARD), [])
        self.assertEqual(classify([], 0, GRANDFATHERED), [])

    def test_invalid_limit_rejected(self):
        with self.assertRaises(ValueError):
            classify(instances(ResourceKind.VCARD, ['A']), -2, STANDARD)

    def test_unknown_kind_has_no_policy(self):
        with self.assertRaises(ValueError):
            policy_for('invoice')


class ClassificationPropertyTests(unittest.TestCase):
    def test_output_preserves_input_order_and_length(self):
        items = instances(ResourceKind.VCARD, list('ABCDEFG'))
        for limit in range(-1, 9):
            for policy in (STANDARD, GRANDFATHERED):
                result = classify(items, limit, policy)
                self.assertEqual([r for r, _ in result], items)

    def test_disabled_suffix_and_counts(self):
        items = instances(ResourceKind.VCARD, list('ABCDEF'))
        for limit in range(0, 8):
            flags = [d for _, d in classify(items, limit, STANDARD)]
            # Entitled instances always precede disabled ones.
            self.assertEqual(flags, sorted(flags))
            self.assertEqual(flags.count(False), min(limit, len(items)))

            grandfathered = [d for _, d in classify(items, limit, GRANDFATHERED)]
            self.assertFalse(grandfathered[0])
            self.assertEqual(grandfathered.count(False), max(1, min(limit, len(items))))

    def test_grandfathered_matches_standard_when_limit_positive(self):
        items = instances(ResourceKind.CUSTOM_DOMAIN, list('ABCDE'))
        for limit in range(1, 7):
            self.assertEqual(classify(items, limit, STANDARD), classify(items, limit, GRANDFATHERED))

    def test_deterministic(self):
        items = instances(ResourceKind.PROJECT, list('ABCDE'))
        self.assertEqual(classify(items, 2, STANDARD), classify(list(items), 2, STANDARD))

    def test_entitled_count_matches_classification(self):
        items = instances(ResourceKind.VCARD, list('ABCD'))
        for limit in range(-1, 6):
            for policy in (StandardPolicy(), GrandfatheredPolicy()):
                expected = sum(1 for _, d in classify(items, limit, policy) if not d)
                self.assertEqual(entitled_count(len(items), limit, policy), expected)


class OrderingTests(unittest.TestCase):
    def test_sort_oldest_first_ties_by_id(self):
        same_time = [
            ResourceInstance(ResourceKind.VCARD, id=3, owner_id=1, created_at=T0),
            ResourceInstance(ResourceKind.VCARD, id=1, owner_id=1, created_at=T0 + timedelta(seconds=1)),
            ResourceInstance(ResourceKind.VCARD, id=2, owner_id=1, created_at=T0),
        ]
        shuffled = list(same_time)
        random.Random(4).shuffle(shuffled)
        self.assertEqual([r.id for r in sort_for_classification(shuffled)], [2, 3, 1])

    def test_decisions_carry_ids(self):
        items = instances(ResourceKind.VCARD, ['A', 'B'])
        result = decisions(classify(items, 1, STANDARD))
        self.assertEqual([(d.resource_id, d.is_disabled) for d in result], [(1, False), (2, True)])


if __name__ == '__main__':
    unittest.main()
