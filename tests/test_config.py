"""
Tests for coderoom.config module.

Tests cover:
- Defaults, loading and merging YAML/JSON files
- Environment variable overrides
- Root and ignore-list helpers
- Commit index limit validation
"""

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml

from coderoom.config import (
    DEFAULT_IGNORE_DIR_NAMES,
    add_ignore_dir_name,
    add_root,
    apply_env_overrides,
    get_commit_index_limits,
    get_config_path,
    get_default_config,
    get_ignore_dir_names,
    load_config,
    merge_configs,
    remove_ignore_dir_name,
    remove_root,
    reset_ignore_dir_names,
    save_config,
    set_commit_index_limits,
)
from coderoom.api import Coderoom
from coderoom.exit_codes import ConfigError, ValidationError


class TestConfigFiles(unittest.TestCase):
    """Tests for loading and saving configuration."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults_when_file_missing(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(Path(self.temp_dir) / 'config.yaml')
        self.assertEqual(config, get_default_config())
        self.assertIn('node_modules', config['ignore_dir_names'])

    def test_yaml_file_is_merged_over_defaults(self):
        path = Path(self.temp_dir) / 'config.yaml'
        with open(path, 'w') as f:
            yaml.safe_dump({'roots': ['/src'], 'commit_index': {'branches': 3}}, f)

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)

        self.assertEqual(config['roots'], ['/src'])
        self.assertEqual(get_commit_index_limits(config), (3, 50))

    def test_json_file(self):
        path = Path(self.temp_dir) / 'config.json'
        path.write_text(json.dumps({'logging': {'level': 'DEBUG'}}))

        with patch.dict(os.environ, {}, clear=True):
            config = load_config(path)

        self.assertEqual(config['logging']['level'], 'DEBUG')

    def test_invalid_yaml_is_config_error(self):
        path = Path(self.temp_dir) / 'config.yaml'
        path.write_text("roots: [unclosed\n")

        with self.assertRaises(ConfigError):
            load_config(path)

    def test_non_mapping_is_config_error(self):
        path = Path(self.temp_dir) / 'config.yaml'
        path.write_text("- just\n- a list\n")

        with self.assertRaises(ConfigError):
            load_config(path)

    def test_save_and_reload(self):
        path = Path(self.temp_dir) / 'nested' / 'config.yaml'
        config = get_default_config()
        add_root(config, self.temp_dir)

        save_config(config, path)
        with patch.dict(os.environ, {}, clear=True):
            reloaded = load_config(path)

        self.assertEqual(reloaded['roots'], [os.path.realpath(self.temp_dir)])

    def test_config_path_from_env(self):
        with patch.dict(os.environ, {'CODEROOM_CONFIG': '/etc/coderoom.yaml'}):
            self.assertEqual(get_config_path(), Path('/etc/coderoom.yaml'))


class TestConfigMerging(unittest.TestCase):

    def test_merge_is_deep_and_does_not_mutate(self):
        base = get_default_config()
        merged = merge_configs(base, {'commit_index': {'commits_per_branch': 7}})

        self.assertEqual(merged['commit_index'], {'branches': 10, 'commits_per_branch': 7})
        self.assertEqual(base['commit_index']['commits_per_branch'], 50)

    def test_env_overrides(self):
        env = {
            'CODEROOM_COMMIT_INDEX_BRANCHES': '20',
            'CODEROOM_LOGGING_LEVEL': 'debug',
            'CODEROOM_UNKNOWN_KEY': 'ignored',
        }
        with patch.dict(os.environ, env, clear=True):
            config = apply_env_overrides(get_default_config())

        self.assertEqual(config['commit_index']['branches'], 20)
        self.assertEqual(config['logging']['level'], 'debug')
        self.assertNotIn('unknown', config)


class TestRootsAndIgnores(unittest.TestCase):

    def test_roots_are_canonical_and_unique(self):
        config = get_default_config()
        temp_dir = tempfile.mkdtemp()
        try:
            self.assertTrue(add_root(config, temp_dir))
            self.assertFalse(add_root(config, temp_dir + os.sep))
            self.assertEqual(config['roots'], [os.path.realpath(temp_dir)])
            self.assertTrue(remove_root(config, temp_dir))
            self.assertFalse(remove_root(config, temp_dir))
        finally:
            os.rmdir(temp_dir)

    def test_ignore_names(self):
        config = get_default_config()

        self.assertTrue(add_ignore_dir_name(config, 'vendor'))
        self.assertFalse(add_ignore_dir_name(config, 'vendor'))
        self.assertIn('vendor', get_ignore_dir_names(config))
        self.assertTrue(remove_ignore_dir_name(config, 'node_modules'))
        self.assertNotIn('node_modules', get_ignore_dir_names(config))

        reset_ignore_dir_names(config)
        self.assertEqual(get_ignore_dir_names(config), sorted(DEFAULT_IGNORE_DIR_NAMES))

    def test_ignore_names_are_single_components(self):
        config = get_default_config()
        for bad in ('', '  ', 'a/b'):
            with self.assertRaises(ValidationError):
                add_ignore_dir_name(config, bad)


class TestCommitIndexLimits(unittest.TestCase):

    def test_defaults(self):
        self.assertEqual(get_commit_index_limits(get_default_config()), (10, 50))

    def test_set_validates(self):
        config = get_default_config()
        set_commit_index_limits(config, 200, 500)
        self.assertEqual(get_commit_index_limits(config), (200, 500))

        for branches, commits in ((0, 1), (201, 1), (1, 0), (1, 501), (True, 1), ('5', 5)):
            with self.assertRaises(ValidationError):
                set_commit_index_limits(config, branches, commits)

    def test_bad_file_values_are_config_errors(self):
        config = merge_configs(get_default_config(), {'commit_index': {'branches': 'many'}})
        with self.assertRaises(ConfigError):
            get_commit_index_limits(config)


class TestFacadeConfigSaving(unittest.TestCase):
    """Environment overrides apply to reads but never reach the file."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / 'config.yaml'
        self.db_path = Path(self.temp_dir) / 'catalog.db'

    def tearDown(self):
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_saved_config_excludes_env_overrides(self):
        env = {'CODEROOM_LOGGING_LEVEL': 'DEBUG', 'CODEROOM_COMMIT_INDEX_BRANCHES': '20'}
        with patch.dict(os.environ, env, clear=True):
            room = Coderoom(config_path=str(self.config_path), db_path=str(self.db_path))
            self.assertEqual(room.config['logging']['level'], 'DEBUG')

            room.add_ignore('vendor')

            self.assertEqual(room.config['logging']['level'], 'DEBUG')
            self.assertIn('vendor', room.ignores())

        with open(self.config_path) as f:
            saved = yaml.safe_load(f)
        self.assertEqual(saved['logging']['level'], 'INFO')
        self.assertEqual(saved['commit_index']['branches'], 10)
        self.assertIn('vendor', saved['ignore_dir_names'])


if __name__ == '__main__':
    unittest.main()
