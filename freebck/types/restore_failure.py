import contextlib
import dataclasses
from pathlib import PurePosixPath
from typing import List, Iterator


@dataclasses.dataclass(frozen=True)
class RestoreFailure:
	path: PurePosixPath  # relative to the snapshot root
	error: Exception


class RestoreFailures:
	def __init__(self, fail_soft: bool):
		self.__fail_soft = fail_soft
		self.failures: List[RestoreFailure] = []

	@contextlib.contextmanager
	def handling_exception(self, path: PurePosixPath):
		try:
			yield
		except Exception as e:
			if self.__fail_soft:
				self.failures.append(RestoreFailure(path, e))
			else:
				raise

	def add(self, path: PurePosixPath, error: Exception):
		if self.__fail_soft:
			self.failures.append(RestoreFailure(path, error))
		else:
			raise error

	def __len__(self) -> int:
		return len(self.failures)

	def __iter__(self) -> Iterator[RestoreFailure]:
		return self.failures.__iter__()

	def to_lines(self) -> List[str]:
		return ['{}: ({}) {}'.format(failure.path.as_posix(), type(failure.error).__name__, failure.error) for failure in self.failures]
