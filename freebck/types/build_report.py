import collections
import dataclasses
import threading
from pathlib import Path
from typing import List, Iterator

from freebck.exceptions import SourceReadError


@dataclasses.dataclass(frozen=True)
class BuildFailure:
	path: Path  # relative to the source root
	error: SourceReadError


class BuildReport:
	"""
	Aggregated outcome of one tree build. Updated concurrently by the file workers
	"""
	def __init__(self):
		self.__lock = threading.Lock()
		self.__references: collections.Counter = collections.Counter()
		self.failures: List[BuildFailure] = []
		self.file_count = 0
		self.dir_count = 0
		self.reused_file_count = 0
		self.skipped_count = 0  # ignored by pattern, or not a regular file nor a directory
		self.total_size = 0
		self.new_object_count = 0
		self.new_object_size = 0

	def add_failure(self, path: Path, error: SourceReadError):
		with self.__lock:
			self.failures.append(BuildFailure(path, error))

	def add_file(self, size: int, *, reused: bool):
		with self.__lock:
			self.file_count += 1
			self.total_size += size
			if reused:
				self.reused_file_count += 1

	def add_dir(self):
		with self.__lock:
			self.dir_count += 1

	def add_skipped(self, count: int):
		with self.__lock:
			self.skipped_count += count

	def add_reference(self, h: str, *, new_object_size: int = -1):
		"""
		Record one reference taken on the object store. ``new_object_size >= 0`` means the object was newly created
		"""
		with self.__lock:
			self.__references[h] += 1
			if new_object_size >= 0:
				self.new_object_count += 1
				self.new_object_size += new_object_size

	def drop_references(self, hashes: List[str]):
		"""
		Forget references that were released already
		"""
		with self.__lock:
			self.__references.subtract(hashes)

	def get_references(self) -> List[str]:
		"""
		:return: all taken references, a hash appears once per reference
		"""
		with self.__lock:
			return list(self.__references.elements())

	@property
	def ok(self) -> bool:
		return len(self.failures) == 0

	def __len__(self) -> int:
		return len(self.failures)

	def __iter__(self) -> Iterator[BuildFailure]:
		return self.failures.__iter__()

	def __repr__(self) -> str:
		return 'BuildReport(files={}, dirs={}, reused_files={}, size={}, new_objects={}, failures={})'.format(
			self.file_count, self.dir_count, self.reused_file_count, self.total_size, self.new_object_count, len(self.failures),
		)
