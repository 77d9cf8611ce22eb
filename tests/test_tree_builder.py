import collections
import os
import sys
import threading
import unittest
from typing import Optional, Tuple

from freebck.action.helpers.tree_builder import TreeBuilder, BuiltTree
from freebck.action.helpers.tree_reader import TreeReader, DirView
from freebck.data.messages import DirEntry, HashRef
from freebck.exceptions import BackupFailed, BackupInterrupted, SourceReadError
from freebck.repository import Repository
from freebck.types.build_report import BuildReport
from freebck.utils import hash_utils
from tests.helpers import RepositoryTestCase, write_file, pseudo_random_bytes, make_config

_MTIME = 1700000000


class TreeBuilderTestCase(RepositoryTestCase):
	def build(self, repo: Optional[Repository] = None) -> Tuple[BuiltTree, BuildReport]:
		report = BuildReport()
		tree = TreeBuilder(repo or self.repo, report).build(self.source)
		return tree, report

	def hash_of(self, data: bytes) -> str:
		return hash_utils.calc_bytes_hash(data, self.repo.hash_method)

	def assert_size_invariant(self, view: DirView) -> int:
		total = sum(f.size for f in view.files)
		for name in view.sub_dir_names:
			total += self.assert_size_invariant(view.open_sub_dir(name))
		self.assertEqual(total, view.size)
		return total

	def test_1_duplicated_files(self):
		data = pseudo_random_bytes(1, 1000)
		for name in ['a.bin', 'b.bin', 'c.bin']:
			write_file(self.source / name, data, mtime=_MTIME)

		tree, report = self.build()
		self.assertEqual(3, report.file_count)
		self.assertEqual(3000, report.total_size)
		self.assertEqual(3000, tree.root.size)
		self.assertTrue(report.ok)

		files = tree.root.file
		self.assertEqual(['a.bin', 'b.bin', 'c.bin'], [f.name for f in files])
		self.assertEqual(1, len({f.chunk_hash for f in files}))
		self.assertEqual(self.hash_of(data), files[0].content_hash)
		size_and_hash = hash_utils.calc_file_size_and_hash(self.source / 'a.bin', self.repo.hash_method)
		self.assertEqual(hash_utils.SizeAndHash(1000, files[0].content_hash), size_and_hash)
		self.assertGreaterEqual(len(files[0].chunk_hash), 2)
		for f in files:
			self.assertEqual(1000, f.size)
			self.assertEqual(_MTIME, f.modified)

		# every chunk is stored once, referenced once per occurrence
		chunk_counter = collections.Counter(files[0].chunk_hash)
		for h, cnt in chunk_counter.items():
			self.assertEqual(3 * cnt, self.ref_count(h))
		self.assertEqual(len(chunk_counter) + 1, self.object_count())
		self.assertEqual(len(chunk_counter) + 1, report.new_object_count)
		self.assertEqual(1, self.ref_count(tree.root_hash))
		self.assertEqual(self.hash_of(tree.root.encode()), tree.root_hash)

	def test_2_inline_and_standalone_dirs(self):
		write_file(self.source / 'small' / 'x.txt', b'0123456789', mtime=_MTIME)
		write_file(self.source / 'big' / 'p.bin', pseudo_random_bytes(2, 100), mtime=_MTIME)
		write_file(self.source / 'big' / 'q.bin', pseudo_random_bytes(3, 100), mtime=_MTIME)
		(self.source / 'empty').mkdir()
		write_file(self.source / 'empty.txt', b'', mtime=_MTIME)

		tree, report = self.build()
		root = tree.root
		self.assertEqual(['big', 'empty', 'small'], [s.name for s in root.sub_dir])
		big, empty, small = root.sub_dir
		self.assertIsInstance(big.content, HashRef)
		self.assertTrue(empty.is_inline)
		self.assertEqual(DirEntry(), empty.content.dir_entry)
		self.assertTrue(small.is_inline)
		self.assertEqual(10, small.content.dir_entry.size)
		self.assertEqual(210, root.size)
		self.assertEqual(4, report.dir_count)

		empty_file = root.file[0]
		self.assertEqual('empty.txt', empty_file.name)
		self.assertEqual((), empty_file.chunk_hash)
		self.assertEqual(0, empty_file.size)
		self.assertEqual(self.hash_of(b''), empty_file.content_hash)

		# chunks, the standalone "big" directory and the root
		reader = TreeReader(self.repo.store)
		view = reader.open(tree.root_hash)
		chunks = set()
		for item in view.walk():
			if item.is_file:
				chunks.update(item.entry.chunk_hash)
		self.assertEqual(len(chunks) + 2, self.object_count())
		self.assertEqual(1, self.ref_count(big.content.hash))
		self.assert_size_invariant(view)

	def test_3_inline_threshold_zero(self):
		self.config.backup.inline_threshold = 0
		write_file(self.source / 'a' / 'b' / 'c.txt', b'abc', mtime=_MTIME)
		(self.source / 'e').mkdir()

		tree, _ = self.build()
		for sub_dir in tree.root.sub_dir:
			self.assertFalse(sub_dir.is_inline)
		view = TreeReader(self.repo.store).open(tree.root_hash)
		self.assertEqual(b'abc', TreeReader(self.repo.store).read_file_bytes(view.open_sub_dir('a').open_sub_dir('b').get_file('c.txt')))
		self.assertEqual(3, self.assert_size_invariant(view))

	def test_4_ignored_and_special_files(self):
		write_file(self.source / 'keep.txt', b'keep')
		write_file(self.source / 'drop.log', b'drop')
		write_file(self.source / 'cache' / 'x.txt', b'cached')
		write_file(self.source / 'sub' / 'cache.txt', b'not a dir')
		os.symlink(self.source / 'keep.txt', self.source / 'link.txt')

		self.config.backup.ignore_patterns = ['*.log', 'cache/']
		tree, report = self.build()
		self.assertEqual(['keep.txt'], [f.name for f in tree.root.file])
		self.assertEqual(['sub'], [s.name for s in tree.root.sub_dir])
		self.assertEqual(2, report.file_count)
		self.assertEqual(3, report.skipped_count)

	@unittest.skipIf(hasattr(os, 'geteuid') and os.geteuid() == 0, 'root can read everything')
	def test_5_unreadable_file(self):
		write_file(self.source / 'ok.txt', b'fine')
		bad = self.source / 'bad.txt'
		write_file(bad, pseudo_random_bytes(4, 300))
		os.chmod(bad, 0)
		self.addCleanup(os.chmod, bad, 0o644)

		tree, report = self.build()
		self.assertFalse(report.ok)
		self.assertEqual(1, len(report))
		failure = list(report)[0]
		self.assertEqual('bad.txt', failure.path.as_posix())
		self.assertIsInstance(failure.error, SourceReadError)
		self.assertEqual(['ok.txt'], [f.name for f in tree.root.file])
		self.assertEqual(4, tree.root.size)

		fail_fast_repo = Repository(make_config(self.root, fail_fast=True))
		self.addCleanup(fail_fast_repo.close)
		with self.assertRaises(BackupFailed) as cm:
			self.build(fail_fast_repo)
		self.assertIsInstance(cm.exception.__cause__, SourceReadError)
		self.assertEqual(1, len(cm.exception.report))

	def test_6_interrupted(self):
		write_file(self.source / 'a.txt', b'a')
		event = threading.Event()
		event.set()
		with self.assertRaises(BackupInterrupted):
			TreeBuilder(self.repo, BuildReport(), is_interrupted=event).build(self.source)

	def test_7_missing_source_root(self):
		with self.assertRaises(SourceReadError):
			TreeBuilder(self.repo, BuildReport()).build(self.root / 'not_exists')

	@unittest.skipUnless(sys.platform.startswith('linux'), 'needs a file system that accepts non-utf8 names')
	def test_8_non_utf8_file_name(self):
		write_file(self.source / 'ok.txt', b'fine')
		write_file(self.source / 'sub' / 'also.txt', b'ok')
		with open(os.path.join(os.fsencode(self.source / 'sub'), b'bad\xff.txt'), 'wb') as f:
			f.write(b'unreachable')

		tree, report = self.build()
		self.assertFalse(report.ok)
		self.assertEqual(1, len(report))
		failure = list(report)[0]
		self.assertEqual('sub/bad\udcff.txt', failure.path.as_posix())
		self.assertIsInstance(failure.error, SourceReadError)
		self.assertEqual(['ok.txt'], [f.name for f in tree.root.file])
		self.assertEqual(['sub'], [s.name for s in tree.root.sub_dir])
		self.assertEqual(6, tree.root.size)
		sub = TreeReader(self.repo.store).open(tree.root_hash).open_sub_dir('sub')
		self.assertEqual(['also.txt'], [f.name for f in sub.files])

		fail_fast_repo = Repository(make_config(self.root, fail_fast=True))
		self.addCleanup(fail_fast_repo.close)
		with self.assertRaises(BackupFailed) as cm:
			self.build(fail_fast_repo)
		self.assertIsInstance(cm.exception.__cause__, SourceReadError)
		self.assertEqual(1, len(cm.exception.report))


if __name__ == '__main__':
	unittest.main()
