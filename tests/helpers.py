import os
import tempfile
import unittest
from pathlib import Path
from typing import Optional, Dict, Any

from typing_extensions import override

from freebck.config.config import Config
from freebck.repository import Repository
from freebck.store.backend import StorageBackend


def make_config(root: Path, **backup_kwargs) -> Config:
	"""
	A config with tiny chunk sizes, so that small test files are split into several chunks
	"""
	backup: Dict[str, Any] = {
		'source_root': str(root / 'source'),
		'inline_threshold': 256,
	}
	backup.update(backup_kwargs)
	return Config.deserialize({
		'storage_root': str(root / 'fb_files'),
		'concurrency': 2,
		'backup': backup,
		'chunker': {
			'min_size': '64B',
			'avg_size': '128B',
			'max_size': '512B',
		},
		'store': {
			'fsync': False,
		},
	})


def write_file(path: Path, data: bytes, *, mtime: Optional[int] = None):
	path.parent.mkdir(parents=True, exist_ok=True)
	with open(path, 'wb') as f:
		f.write(data)
	if mtime is not None:
		os.utime(path, (mtime, mtime))


def pseudo_random_bytes(seed: int, size: int) -> bytes:
	import random
	return random.Random(seed).randbytes(size)


class RepositoryTestCase(unittest.TestCase):
	"""
	Every test gets its own temp directory holding the source tree and the storage root
	"""
	backup_kwargs: Dict[str, Any] = {}

	@override
	def setUp(self):
		temp_dir = tempfile.TemporaryDirectory(prefix='freebck_test_')
		self.addCleanup(temp_dir.cleanup)
		self.root = Path(temp_dir.name)
		self.source = self.root / 'source'
		self.source.mkdir()
		self.config = make_config(self.root, **self.backup_kwargs)
		self.repo = self.open_repo()

	def open_repo(self, backend: Optional[StorageBackend] = None) -> Repository:
		repo = Repository(self.config, backend=backend)
		self.addCleanup(repo.close)
		return repo

	def ref_count(self, h: str) -> int:
		return self.repo.store.ref_count(h)

	def object_count(self) -> int:
		with self.repo.db.open_session() as session:
			return session.get_object_count()
