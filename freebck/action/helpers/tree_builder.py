import dataclasses
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Optional, List, Dict

from freebck import logger
from freebck.action.helpers.source_scanner import SourceScanner, SourceEntry
from freebck.action.helpers.tree_reader import DirView, BRANCH_ERRORS
from freebck.chunker import Chunker
from freebck.data.messages import DirEntry, FileEntry, SubDirEntry, HashRef, Inline
from freebck.exceptions import SourceReadError, BackupInterrupted, BackupFailed, StoreWriteError
from freebck.repository import Repository
from freebck.types.build_report import BuildReport
from freebck.utils import hash_utils
from freebck.utils.bypass_io import BypassReader
from freebck.utils.thread_pool import FailFastThreadPool


@dataclasses.dataclass(frozen=True)
class BuiltTree:
	root: DirEntry
	root_hash: str


class TreeBuilder:
	"""
	Builds the tree of a source directory bottom-up, storing chunks and standalone directories into the object store

	Files are processed by a worker pool. Directories are assembled in the calling thread,
	after all of their files and sub-directories are done
	"""
	def __init__(self, repo: Repository, report: BuildReport, *, is_interrupted: Optional[threading.Event] = None, previous_root: Optional[DirView] = None):
		self.logger = logger.get()
		self.repo = repo
		self.store = repo.store
		self.report = report
		self.is_interrupted = is_interrupted or threading.Event()
		self.previous_root = previous_root

		config = repo.config
		self.hash_method = config.backup.hash_method
		self.chunker = Chunker.from_config(config.chunker)
		self.inline_threshold = config.backup.inline_threshold
		self.fail_fast = config.backup.fail_fast
		self.reuse_unchanged_files = config.backup.reuse_unchanged_files
		self.ignore_patterns = list(config.backup.ignore_patterns)
		self.concurrency = config.get_effective_concurrency()

	def __check_interrupted(self):
		if self.is_interrupted.is_set():
			raise BackupInterrupted('interrupted')

	def __handle_source_error(self, path: Path, error: SourceReadError):
		self.logger.warning('Skipping {!r}: {}'.format(path.as_posix(), error))
		self.report.add_failure(path, error)
		if self.fail_fast:
			raise BackupFailed('source {!r} cannot be read, failing fast'.format(path.as_posix()), self.report) from error

	def __store_object(self, h: str, data: bytes):
		if self.store.has(h) and self.store.add_ref(h):
			self.report.add_reference(h)
		else:
			created = self.store.put(h, data)
			self.report.add_reference(h, new_object_size=len(data) if created else -1)

	def __release_quietly(self, hashes: List[str]):
		for h in hashes:
			try:
				self.store.release(h)
			except Exception as e:
				self.logger.error('Release object {} failed: {}'.format(h, e))
		self.report.drop_references(hashes)

	# ================================ Files ================================

	def __try_reuse_file(self, entry: SourceEntry, previous: FileEntry) -> Optional[FileEntry]:
		if previous.size != entry.size or previous.modified != entry.modified:
			return None
		if not all(self.store.has(h) for h in previous.chunk_hash):
			return None
		for h in previous.chunk_hash:
			if not self.store.add_ref(h):
				raise StoreWriteError(h, RuntimeError('object vanished while being referenced'))
			self.report.add_reference(h)
		return FileEntry(
			name=entry.name,
			content_hash=previous.content_hash,
			chunk_hash=previous.chunk_hash,
			size=previous.size,
			modified=entry.modified,
		)

	def __read_file(self, entry: SourceEntry, taken: List[str]) -> FileEntry:
		chunk_hashes: List[str] = []
		with open(entry.path, 'rb') as f:
			reader = BypassReader(f, self.hash_method)
			for chunk in self.chunker.chunk(reader):
				self.__check_interrupted()
				h = hash_utils.calc_bytes_hash(chunk.data, self.hash_method)
				self.__store_object(h, chunk.data)
				taken.append(h)
				chunk_hashes.append(h)
		return FileEntry(
			name=entry.name,
			content_hash=reader.get_hash(),
			chunk_hash=tuple(chunk_hashes),
			size=reader.get_read_len(),
			modified=entry.modified,
		)

	def __build_file(self, entry: SourceEntry, previous: Optional[FileEntry]) -> Optional[FileEntry]:
		self.__check_interrupted()
		if previous is not None and self.reuse_unchanged_files:
			if (file_entry := self.__try_reuse_file(entry, previous)) is not None:
				self.logger.debug('Reusing unchanged file {!r}'.format(entry.rel_path.as_posix()))
				self.report.add_file(file_entry.size, reused=True)
				return file_entry

		self.logger.debug('Chunking file {!r}'.format(entry.rel_path.as_posix()))
		taken: List[str] = []
		try:
			file_entry = self.__read_file(entry, taken)
		except OSError as e:
			self.__release_quietly(taken)
			self.__handle_source_error(entry.rel_path, SourceReadError(entry.rel_path, e))
			return None
		self.report.add_file(file_entry.size, reused=False)
		return file_entry

	# ============================= Directories =============================

	def __open_previous_sub_dir(self, previous: Optional[DirView], name: str) -> Optional[DirView]:
		if previous is None or (sub_dir := previous.get_sub_dir(name)) is None:
			return None
		try:
			return previous.reader.open_sub_dir(sub_dir)
		except BRANCH_ERRORS as e:
			self.logger.warning('Cannot open previous directory {!r}, files inside will be read again: {}'.format(name, e))
			return None

	def __make_sub_dir_entry(self, name: str, dir_entry: DirEntry) -> SubDirEntry:
		buf = dir_entry.encode()
		if len(buf) < self.inline_threshold:
			return SubDirEntry(name=name, content=Inline(dir_entry))
		h = hash_utils.calc_bytes_hash(buf, self.hash_method)
		self.__store_object(h, buf)
		return SubDirEntry(name=name, content=HashRef(h))

	def __build_dir(self, pool: FailFastThreadPool, scanner: SourceScanner, rel_path: Path, previous: Optional[DirView]) -> DirEntry:
		self.__check_interrupted()
		scan_result = scanner.scan_dir(rel_path)
		for path, error in scan_result.failures:
			self.__handle_source_error(path, error)
		self.report.add_skipped(scan_result.ignored_count + scan_result.skipped_count)

		previous_files: Dict[str, FileEntry] = {}
		if previous is not None:
			previous_files = {f.name: f for f in previous.files}

		file_futures: List['Future[Optional[FileEntry]]'] = []
		for entry in scan_result.files:
			file_futures.append(pool.submit(self.__build_file, entry, previous_files.get(entry.name)))

		sub_dirs: List[SubDirEntry] = []
		sub_dirs_size = 0
		for entry in scan_result.dirs:
			previous_sub_dir = self.__open_previous_sub_dir(previous, entry.name)
			try:
				sub_dir_entry = self.__build_dir(pool, scanner, entry.rel_path, previous_sub_dir)
			except SourceReadError as e:
				self.__handle_source_error(entry.rel_path, e)
				continue
			sub_dirs.append(self.__make_sub_dir_entry(entry.name, sub_dir_entry))
			sub_dirs_size += sub_dir_entry.size

		files: List[FileEntry] = []
		for future in file_futures:
			if (file_entry := future.result()) is not None:
				files.append(file_entry)

		self.report.add_dir()
		return DirEntry(sub_dir=tuple(sub_dirs), file=tuple(files), size=sub_dirs_size + sum(f.size for f in files))

	def build(self, source_path: Path) -> BuiltTree:
		"""
		:raise SourceReadError: the source root cannot be read
		:raise BackupFailed: a source entry cannot be read in fail-fast mode
		:raise BackupInterrupted: interrupted
		"""
		scanner = SourceScanner(source_path, self.ignore_patterns)
		with FailFastThreadPool('builder', self.concurrency) as pool:
			root = self.__build_dir(pool, scanner, Path(), self.previous_root)

		buf = root.encode()
		root_hash = hash_utils.calc_bytes_hash(buf, self.hash_method)
		self.__store_object(root_hash, buf)
		return BuiltTree(root=root, root_hash=root_hash)
