import unittest

from vcardhub.domain.enums import ResourceKind
from vcardhub.domain.plan_features import limit_from_features, normalize_features


class PlanFeatureParsingTests(unittest.TestCase):
    def test_first_number_in_matching_feature(self):
        features = ['Up to 5 vCards', '50 vCard blocks', '3 projects']
        self.assertEqual(limit_from_features(features, ResourceKind.VCARD, 1), 5)
        self.assertEqual(limit_from_features(features, ResourceKind.PROJECT, 1), 3)

    def test_block_feature_is_not_a_vcard_limit(self):
        self.assertEqual(limit_from_features(['50 vCard blocks'], ResourceKind.VCARD, 1), 1)

    def test_unlimited(self):
        self.assertEqual(limit_from_features(['Unlimited pixels'], ResourceKind.PIXEL, 0), -1)

    def test_default_when_missing(self):
        self.assertEqual(limit_from_features([], ResourceKind.PIXEL, 0), 0)
        self.assertEqual(limit_from_features(['Custom domain support'], ResourceKind.CUSTOM_DOMAIN, 1), 1)

    def test_features_stored_as_json_string(self):
        self.assertEqual(normalize_features('["2 pixels"]'), ['2 pixels'])
        self.assertEqual(limit_from_features('["2 pixels"]', ResourceKind.PIXEL, 0), 2)
        self.assertEqual(normalize_features('not json'), [])
        self.assertEqual(normalize_features(None), [])


if __name__ == '__main__':
    unittest.main()
