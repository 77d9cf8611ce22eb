import json
import tempfile
import unittest
from pathlib import Path

from freebck.config.config import Config
from freebck.config.sub_configs import ChunkerConfig
from freebck.exceptions import HashMethodMismatch, BadDbVersion
from freebck.repository import Repository
from freebck.types.hash_method import HashMethod
from freebck.types.units import ByteCount
from tests.helpers import make_config


class ByteCountTestCase(unittest.TestCase):
	def test_1_parse(self):
		self.assertEqual(1024, ByteCount('1KiB').value)
		self.assertEqual(1024, ByteCount('1k').value)
		self.assertEqual(1000 * 1000, ByteCount('1MB').value)
		self.assertEqual(4 * 1024 * 1024, ByteCount('4MiB').value)
		self.assertEqual(1536, ByteCount('1.5KiB').value)
		self.assertEqual(64, ByteCount('64').value)
		self.assertEqual(64, ByteCount(64).value)
		for bad in ['', 'abc', '1.5B', '3XiB']:
			with self.subTest(bad=bad):
				with self.assertRaises(ValueError):
					ByteCount(bad)

	def test_2_str(self):
		self.assertEqual('1MiB', ByteCount(1024 * 1024))
		self.assertEqual('1000B', ByteCount('1000'))
		self.assertEqual('1.50KiB', ByteCount(1536).auto_str())
		self.assertEqual('0B', ByteCount(0).auto_str(ndigits=-1))


class ConfigTestCase(unittest.TestCase):
	def test_1_defaults(self):
		config = Config.get_default()
		self.assertEqual('default', config.archive_name)
		self.assertEqual(256, config.backup.inline_threshold)
		self.assertFalse(config.backup.fail_fast)
		self.assertTrue(config.backup.reuse_unchanged_files)
		self.assertEqual(HashMethod.sha256, config.backup.hash_method)
		self.assertEqual(1024 * 1024, config.chunker.avg_size.value)
		self.assertGreaterEqual(config.get_effective_concurrency(), 1)

	def test_2_load_save(self):
		with tempfile.TemporaryDirectory() as temp_dir:
			path = Path(temp_dir) / 'config.json'
			self.assertEqual(Config.get_default().serialize(), Config.load(path).serialize())

			config = make_config(Path(temp_dir), inline_threshold=100, ignore_patterns=['*.tmp'])
			config.save(path)
			with open(path, 'r', encoding='utf8') as f:
				data = json.load(f)
			self.assertEqual('128B', data['chunker']['avg_size'])
			self.assertEqual('sha256', data['backup']['hash_method'])

			loaded = Config.load(path)
			self.assertEqual(100, loaded.backup.inline_threshold)
			self.assertEqual(['*.tmp'], loaded.backup.ignore_patterns)
			self.assertEqual(128, loaded.chunker.avg_size.value)
			self.assertEqual(config.serialize(), loaded.serialize())

	def test_3_bad_chunker_config(self):
		for data in [
			{'min_size': '2MiB', 'avg_size': '1MiB', 'max_size': '4MiB'},
			{'min_size': '1KiB', 'avg_size': '3KiB', 'max_size': '4KiB'},
		]:
			with self.subTest(data=data):
				with self.assertRaises(ValueError):
					ChunkerConfig.deserialize(data)

	def test_4_storage_root_checks(self):
		with tempfile.TemporaryDirectory() as temp_dir:
			config = make_config(Path(temp_dir))
			config.storage_path.mkdir()
			with self.assertRaises(BadDbVersion):
				Repository(config, create=False)

			Repository(config).close()
			config.backup.hash_method = HashMethod.blake3
			with self.assertRaises(HashMethodMismatch):
				Repository(config)


if __name__ == '__main__':
	unittest.main()
