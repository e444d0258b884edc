import unittest

from conftest import TOKEN, FakeResolver
from vcardhub.domain.hostnames import is_valid_fqdn, normalize_domain
from vcardhub.services.dns_challenge import CircuitOpen, DnsChallengeChecker, LookupOutcome, LookupUnavailable, NameNotFound
from vcardhub.utils.circuit_breaker import CircuitBreaker


TARGET = 'cards.example.net'


class ManualClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class DnsChallengeCheckerTests(unittest.TestCase):
    def setUp(self):
        self.resolver = FakeResolver()
        self.checker = DnsChallengeChecker(self.resolver, breaker=CircuitBreaker(failure_threshold=3))

    def test_cname_match_skips_txt_lookup(self):
        self.resolver.point_cname('x.example.com')
        result = self.checker.check('x.example.com', TARGET, TOKEN)
        self.assertTrue(result.verified)
        self.assertEqual(self.resolver.calls, ['x.example.com'])

    def test_txt_token_match(self):
        self.resolver.publish_txt('x.example.com')
        result = self.checker.check('X.Example.com.', TARGET, TOKEN)
        self.assertTrue(result.verified)
        self.assertEqual([c.outcome for c in result.checks], [LookupOutcome.ABSENT, LookupOutcome.MATCH])

    def test_no_records_is_definitive_failure(self):
        result = self.checker.check('x.example.com', TARGET, TOKEN)
        self.assertFalse(result.verified)
        self.assertTrue(result.definitive_failure)

    def test_wrong_values_are_mismatches(self):
        self.resolver.point_cname('x.example.com', 'elsewhere.example.org')
        self.resolver.publish_txt('x.example.com', 'cd' * 32)
        result = self.checker.check('x.example.com', TARGET, TOKEN)
        self.assertEqual([c.outcome for c in result.checks], [LookupOutcome.MISMATCH, LookupOutcome.MISMATCH])
        self.assertTrue(result.definitive_failure)

    def test_unresolvable_domain_is_definitive_failure(self):
        self.resolver.cnames['x.example.com'] = NameNotFound
        result = self.checker.check('x.example.com', TARGET, TOKEN)
        self.assertEqual([c.outcome for c in result.checks], [LookupOutcome.ABSENT, LookupOutcome.ABSENT])
        self.assertTrue(result.definitive_failure)
        self.assertFalse(result.lookup_failed)

    def test_timeout_is_transient_but_match_wins(self):
        self.resolver.cnames['x.example.com'] = LookupUnavailable
        self.assertTrue(self.checker.check('x.example.com', TARGET, TOKEN).transient)

        self.resolver.publish_txt('x.example.com')
        result = self.checker.check('x.example.com', TARGET, TOKEN)
        self.assertTrue(result.verified)
        self.assertFalse(result.transient)

    def test_check_dicts_do_not_echo_expected_token(self):
        self.resolver.publish_txt('x.example.com', 'cd' * 32)
        checks = self.checker.check('x.example.com', TARGET, TOKEN).to_list()
        self.assertNotIn(TOKEN, str(checks))

    def test_instructions(self):
        out = self.checker.instructions('x.example.com', TARGET, TOKEN)
        self.assertEqual(out['cname'], {'type': 'CNAME', 'name': '@', 'host': 'x.example.com', 'value': TARGET})
        self.assertEqual(out['txt'], {'type': 'TXT', 'name': '_vcard-verify.x.example.com', 'value': TOKEN})

    def test_circuit_opens_after_repeated_transient_lookups(self):
        self.resolver.break_lookups('x.example.com')
        for _ in range(3):
            self.assertTrue(self.checker.check('x.example.com', TARGET, TOKEN).transient)
        with self.assertRaises(CircuitOpen):
            self.checker.check('x.example.com', TARGET, TOKEN)

    def test_missing_zones_do_not_open_circuit(self):
        for i in range(5):
            self.resolver.cnames[f'new{i}.example.com'] = NameNotFound
            self.assertTrue(self.checker.check(f'new{i}.example.com', TARGET, TOKEN).definitive_failure)

        self.resolver.point_cname('good.example.com')
        self.assertTrue(self.checker.check('good.example.com', TARGET, TOKEN).verified)
        self.assertEqual(self.checker.breaker.state, CircuitBreaker.CLOSED)


class CircuitBreakerTests(unittest.TestCase):
    def test_half_open_trial_closes_on_success(self):
        clock = ManualClock()
        breaker = CircuitBreaker(failure_threshold=2, reset_seconds=30, clock=clock)
        breaker.record_failure()
        breaker.record_failure()
        self.assertEqual(breaker.state, CircuitBreaker.OPEN)
        self.assertFalse(breaker.allow())
        self.assertEqual(breaker.retry_after(), 30)

        clock.now += 30
        self.assertTrue(breaker.allow())
        self.assertFalse(breaker.allow())
        breaker.record_success()
        self.assertEqual(breaker.state, CircuitBreaker.CLOSED)

    def test_failed_trial_reopens(self):
        clock = ManualClock()
        breaker = CircuitBreaker(failure_threshold=1, reset_seconds=10, clock=clock)
        breaker.record_failure()
        clock.now += 10
        self.assertTrue(breaker.allow())
        breaker.record_failure()
        self.assertEqual(breaker.state, CircuitBreaker.OPEN)


class HostnameTests(unittest.TestCase):
    def test_fqdn_validation(self):
        self.assertTrue(is_valid_fqdn('x.example.com'))
        self.assertTrue(is_valid_fqdn('xn--bcher-kva.example'))
        self.assertFalse(is_valid_fqdn('localhost'))
        self.assertFalse(is_valid_fqdn('https://x.example.com'))
        self.assertFalse(is_valid_fqdn('-bad.example.com'))
        self.assertFalse(is_valid_fqdn('x.example.123'))

    def test_normalize(self):
        self.assertEqual(normalize_domain('  WWW.Example.COM. '), 'www.example.com')


if __name__ == '__main__':
    unittest.main()
