"""Tests for configuration management."""

import json
import os
import shutil
import tempfile
import unittest

import yaml

from ledger_insights.utils.config_manager import ConfigManager
from ledger_insights.models.core import EngineConfig


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager"""

    def setUp(self):
        """Set up test fixtures"""
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = os.path.join(self.temp_dir, 'test_config.json')

    def tearDown(self):
        """Clean up test fixtures"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_json(self, data):
        with open(self.config_file, 'w') as f:
            json.dump(data, f)

    def test_default_config_loading(self):
        """Test loading default configuration when no file exists"""
        manager = ConfigManager(config_path="nonexistent_file.json")
        config = manager.load_config()

        self.assertIsInstance(config, EngineConfig)
        self.assertEqual(config.journal_files, ["data/sample.journal"])
        self.assertEqual(config.uploaded_journal, "data/uploaded.journal")
        self.assertEqual(config.currency_symbol, "£")
        self.assertEqual(config.min_occurrences, 3)
        self.assertEqual(config.max_gap_variation, 0.5)
        self.assertEqual(config.anomaly_threshold, 1.5)
        self.assertTrue(config.sign_insensitive_dedup)

    def test_config_file_loading(self):
        """Test loading configuration from JSON file"""
        self.write_json({
            "journal_files": ["books/main.journal"],
            "uploaded_journal": "books/uploaded.journal",
            "currency_symbol": "$",
            "min_occurrences": 4,
            "anomaly_threshold": 2,
            "sign_insensitive_dedup": False,
        })

        config = ConfigManager(config_path=self.config_file).load_config()

        self.assertEqual(config.journal_files, ["books/main.journal"])
        self.assertEqual(config.uploaded_journal, "books/uploaded.journal")
        self.assertEqual(config.currency_symbol, "$")
        self.assertEqual(config.min_occurrences, 4)
        self.assertEqual(config.anomaly_threshold, 2)
        self.assertFalse(config.sign_insensitive_dedup)
        self.assertEqual(config.all_journal_files(), ["books/main.journal", "books/uploaded.journal"])

    def test_yaml_config_loading(self):
        """Test loading configuration from YAML file"""
        yaml_file = os.path.join(self.temp_dir, 'config.yml')
        with open(yaml_file, 'w') as f:
            yaml.safe_dump({'ledger_binary': '/usr/local/bin/hledger', 'category_depth': 3}, f)

        config = ConfigManager(config_path=yaml_file).load_config()

        self.assertEqual(config.ledger_binary, '/usr/local/bin/hledger')
        self.assertEqual(config.category_depth, 3)

    def test_invalid_config_falls_back_to_defaults(self):
        """Test that invalid values are rejected as a whole"""
        self.write_json({"currency_symbol": "€", "min_occurrences": 1})

        config = ConfigManager(config_path=self.config_file).load_config()

        self.assertEqual(config.currency_symbol, "£")
        self.assertEqual(config.min_occurrences, 3)

    def test_malformed_file_falls_back_to_defaults(self):
        with open(self.config_file, 'w') as f:
            f.write("{not json")

        config = ConfigManager(config_path=self.config_file).load_config()
        self.assertEqual(config, EngineConfig())

    def test_wrong_types_rejected(self):
        for data in (
            {"journal_files": "main.journal"},
            {"command_timeout": -1},
            {"category_depth": True},
            {"sign_insensitive_dedup": "yes"},
            {"balancing_account": ""},
            ["not", "a", "dict"],
        ):
            self.write_json(data)
            config = ConfigManager(config_path=self.config_file).load_config()
            self.assertEqual(config, EngineConfig(), msg=str(data))

    def test_unknown_keys_ignored(self):
        self.write_json({"currency_symbol": "$", "colour": "blue"})
        with self.assertLogs('ledger_insights.utils.config_manager', level='WARNING') as logs:
            config = ConfigManager(config_path=self.config_file).load_config()

        self.assertEqual(config.currency_symbol, "$")
        self.assertTrue(any('colour' in message for message in logs.output))

    def test_config_is_cached(self):
        self.write_json({"currency_symbol": "$"})
        manager = ConfigManager(config_path=self.config_file)
        first = manager.load_config()

        self.write_json({"currency_symbol": "€"})
        self.assertIs(manager.load_config(), first)
        self.assertEqual(manager.load_config(force_reload=True).currency_symbol, "€")

    def test_save_config_template(self):
        """Test saving configuration template"""
        template_file = os.path.join(self.temp_dir, 'template.json')
        ConfigManager().save_config_template(template_file)

        with open(template_file, encoding='utf-8') as f:
            template = json.load(f)

        self.assertEqual(template['currency_symbol'], '£')
        self.assertEqual(template['journal_files'], ["data/sample.journal"])
        self.assertEqual(ConfigManager(config_path=template_file).load_config(), EngineConfig())

    def test_save_yaml_template(self):
        template_file = os.path.join(self.temp_dir, 'nested', 'template.yaml')
        ConfigManager().save_config_template(template_file)

        with open(template_file, encoding='utf-8') as f:
            template = yaml.safe_load(f)
        self.assertEqual(template['max_gap_variation'], 0.5)

    def test_update_and_reset_config(self):
        manager = ConfigManager(config_path="nonexistent_file.json")
        manager.update_config({'anomaly_threshold': 3.0, 'unknown_key': 1})
        self.assertEqual(manager.load_config().anomaly_threshold, 3.0)

        manager.reset_config()
        self.assertEqual(manager.load_config().anomaly_threshold, 1.5)


if __name__ == '__main__':
    unittest.main()
