import unittest

from logger import ProgressTracker, _sanitize_config, setup_logging


class TestProgressTracker(unittest.TestCase):
    def test_counts(self):
        with ProgressTracker(3, "attachments") as tracker:
            tracker.increment(success=True)
            tracker.increment(success=False)
            tracker.increment(success=True)

        stats = tracker.get_stats()
        self.assertEqual((stats['processed'], stats['successful'], stats['failed']), (3, 2, 1))
        self.assertAlmostEqual(stats['success_rate'], 200 / 3)

    def test_elapsed_formatting(self):
        self.assertEqual(ProgressTracker._format_elapsed(5), '5.0s')
        self.assertEqual(ProgressTracker._format_elapsed(125), '2m 5s')
        self.assertEqual(ProgressTracker._format_elapsed(3725), '1h 2m 5s')


class TestLoggingSetup(unittest.TestCase):
    def test_invalid_level(self):
        with self.assertRaises(ValueError):
            setup_logging(level='LOUD')

    def test_secrets_redacted(self):
        config = {'bookstack': {'token_id': 'abc', 'token_secret': 'very-secret'}}
        sanitized = _sanitize_config(config)
        self.assertNotEqual(sanitized['bookstack']['token_secret'], 'very-secret')
        self.assertEqual(config['bookstack']['token_secret'], 'very-secret')


if __name__ == '__main__':
    unittest.main()
