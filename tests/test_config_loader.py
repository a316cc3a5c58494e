"""Tests for configuration loading, CLI overrides and progress events."""

import argparse
import unittest

import pytest

import migrate
from config_loader import DEFAULT_CONFIG, ConfigLoader, get_nested
from models import ProgressEvent
from orchestrator import ProgressReporter


def valid_config(**overrides):
    config = ConfigLoader.apply_defaults({
        'bookstack': {'base_url': 'https://wiki.example.com', 'token_id': 'a', 'token_secret': 'b'},
        'export': {'path': './exports', 'folder': 'ITDocs'}
    })
    for path, value in overrides.items():
        section, key = path.split('__')
        config[section][key] = value
    return config


class TestValidation(unittest.TestCase):
    def test_valid_config(self):
        ConfigLoader.validate(valid_config())

    def test_missing_credentials(self):
        config = valid_config(bookstack__token_id='')
        with self.assertRaises(ValueError):
            ConfigLoader.validate(config)
        # Classification alone needs no credentials
        ConfigLoader.validate(config, require_remote=False)

    def test_unsubstituted_variable(self):
        with self.assertRaisesRegex(ValueError, 'BOOKSTACK_TOKEN_SECRET'):
            ConfigLoader.validate(valid_config(bookstack__token_secret='${BOOKSTACK_TOKEN_SECRET}'))

    def test_bad_url(self):
        with self.assertRaises(ValueError):
            ConfigLoader.validate(valid_config(bookstack__base_url='wiki.example.com'))

    def test_unknown_mode(self):
        with self.assertRaisesRegex(ValueError, 'migration.mode'):
            ConfigLoader.validate(valid_config(migration__mode='pdf'))

    def test_negative_delay(self):
        with self.assertRaises(ValueError):
            ConfigLoader.validate(valid_config(migration__page_delay=-1))

    def test_defaults_applied_without_sharing_state(self):
        config = ConfigLoader.apply_defaults({'migration': {'page_delay': 2}})
        self.assertEqual(config['migration']['page_delay'], 2)
        self.assertEqual(config['migration']['entity_delay'], 0.1)
        config['retry']['max_attempts'] = 9
        self.assertEqual(DEFAULT_CONFIG['retry']['max_attempts'], 5)

    def test_get_nested(self):
        config = {'a': {'b': {'c': 1}}}
        self.assertEqual(get_nested(config, 'a.b.c'), 1)
        self.assertEqual(get_nested(config, 'a.x.c', 'd'), 'd')


class TestLoadFromFile:
    def test_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv('BOOKSTACK_TOKEN_ID', 'from-env')
        monkeypatch.delenv('BOOKSTACK_TOKEN_SECRET', raising=False)
        path = tmp_path / 'config.yaml'
        path.write_text(
            "bookstack:\n"
            "  base_url: https://wiki.example.com\n"
            "  token_id: ${BOOKSTACK_TOKEN_ID}\n"
            "  token_secret: ${BOOKSTACK_TOKEN_SECRET}\n"
            "export:\n"
            "  path: ./exports\n"
            "migration:\n"
            "  page_delay: 1.5\n"
        )

        config = ConfigLoader.load(str(path))

        assert config['bookstack']['token_id'] == 'from-env'
        assert config['bookstack']['token_secret'] == '${BOOKSTACK_TOKEN_SECRET}'
        assert config['migration']['page_delay'] == 1.5
        assert config['retry']['multiplier'] == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConfigLoader.load(str(tmp_path / 'nope.yaml'))

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            ConfigLoader.load(str(path))


class TestCommandLine:
    def test_arguments_override_config(self):
        args = argparse.Namespace(
            mode='xml', dry_run=True, page_delay=0.0, export_path='/data', folder='Ops',
            manifest='/tmp/m.json', log_file=None
        )
        merged = ConfigLoader.merge_with_args(valid_config(), args)

        assert merged['migration']['mode'] == 'xml'
        assert merged['migration']['dry_run'] is True
        assert merged['migration']['page_delay'] == 0.0
        assert merged['export']['path'] == '/data'
        assert merged['export']['folder'] == 'Ops'
        assert merged['export']['manifest_path'] == '/tmp/m.json'
        assert merged['logging']['file'] is None

    def test_no_dry_run_flag_keeps_config(self):
        args = migrate.create_argument_parser().parse_args(['import'])
        assert args.dry_run is None
        merged = ConfigLoader.merge_with_args(valid_config(migration__dry_run=True), args)
        assert merged['migration']['dry_run'] is True

    def test_command_sets_mode(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("export:\n  path: ./exports\nmigration:\n  mode: html\n")
        parser = migrate.create_argument_parser()

        args = parser.parse_args(['xml-import', '-c', str(path), '--folder', 'Ops', '--no-dry-run'])
        config = migrate.load_configuration(args)

        assert config['migration']['mode'] == 'xml'
        assert config['migration']['dry_run'] is False
        assert config['export']['folder'] == 'Ops'

    def test_sort_without_config_file(self, tmp_path):
        args = migrate.create_argument_parser().parse_args(
            ['sort', '-c', str(tmp_path / 'missing.yaml'), '--export-path', str(tmp_path)]
        )
        config = migrate.load_configuration(args)
        assert config['export']['path'] == str(tmp_path)

    def test_unknown_command_rejected(self):
        with pytest.raises(SystemExit):
            migrate.create_argument_parser().parse_args(['publish'])


class TestProgressReporter(unittest.TestCase):
    def test_events_reach_subscribers(self):
        reporter = ProgressReporter()
        events = []
        reporter.subscribe(lambda event_type, event: events.append((event_type, event)))

        reporter.progress('pages', 'Created Cron Setup', current=1, total=4, counters={'pages': 1})

        event_type, event = events[0]
        self.assertEqual(event_type, 'progress')
        self.assertEqual(event.percent, 25)
        self.assertEqual(event.to_dict()['counters'], {'pages': 1})

    def test_failing_subscriber_does_not_interrupt(self):
        reporter = ProgressReporter()
        received = []

        def broken(event_type, event):
            raise RuntimeError('display gone')

        reporter.subscribe(broken)
        reporter.subscribe(lambda event_type, event: received.append(event_type))

        with self.assertLogs('confluence_bookstack_migrator.orchestrator.progress', level='WARNING'):
            reporter.complete('books', 'done')
        self.assertEqual(received, ['complete'])

    def test_unsubscribe(self):
        reporter = ProgressReporter()
        received = []
        unsubscribe = reporter.subscribe(lambda event_type, event: received.append(event_type))
        unsubscribe()
        reporter.start('shelves', 'go')
        self.assertEqual(received, [])

    def test_percent_without_total(self):
        self.assertIsNone(ProgressEvent(phase='x', message='y').percent)


if __name__ == '__main__':
    unittest.main()
