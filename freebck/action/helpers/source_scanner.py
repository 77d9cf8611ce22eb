import dataclasses
import os
import stat
from pathlib import Path
from typing import List, Tuple

import pathspec

from freebck import logger
from freebck.exceptions import SourceReadError
from freebck.utils import time_utils


@dataclasses.dataclass(frozen=True)
class SourceEntry:
	name: str
	path: Path  # full path
	rel_path: Path  # relative to the source root
	size: int
	modified: int  # unix timestamp in seconds


@dataclasses.dataclass
class ScanResult:
	dirs: List[SourceEntry] = dataclasses.field(default_factory=list)
	files: List[SourceEntry] = dataclasses.field(default_factory=list)
	failures: List[Tuple[Path, SourceReadError]] = dataclasses.field(default_factory=list)
	ignored_count: int = 0
	skipped_count: int = 0


class SourceScanner:
	"""
	Lists the source tree one directory at a time.
	Only regular files and directories are kept, symlinks and special files are dropped
	"""
	def __init__(self, source_root: Path, ignore_patterns: List[str]):
		self.logger = logger.get()
		self.source_root = source_root
		self.ignore_spec = pathspec.GitIgnoreSpec.from_lines(ignore_patterns)

	def __is_ignored(self, rel_path: Path, is_dir: bool) -> bool:
		p = rel_path.as_posix()
		if is_dir:
			p += '/'
		return self.ignore_spec.match_file(p)

	def scan_dir(self, rel_path: Path) -> ScanResult:
		"""
		:raise SourceReadError: if the directory itself cannot be listed
		"""
		full_path = self.source_root / rel_path
		try:
			with os.scandir(full_path) as it:
				dir_entries = list(it)
		except OSError as e:
			raise SourceReadError(rel_path, e) from e

		result = ScanResult()
		for de in dir_entries:
			child_rel_path = rel_path / de.name
			try:
				de.name.encode('utf8')
			except UnicodeEncodeError as e:
				result.failures.append((child_rel_path, SourceReadError(child_rel_path, e)))
				continue

			try:
				st = de.stat(follow_symlinks=False)
			except OSError as e:
				result.failures.append((child_rel_path, SourceReadError(child_rel_path, e)))
				continue

			is_dir = stat.S_ISDIR(st.st_mode)
			if self.__is_ignored(child_rel_path, is_dir):
				result.ignored_count += 1
				continue

			entry = SourceEntry(
				name=de.name,
				path=full_path / de.name,
				rel_path=child_rel_path,
				size=st.st_size,
				modified=time_utils.as_unix_timestamp(st.st_mtime),
			)
			if is_dir:
				result.dirs.append(entry)
			elif stat.S_ISREG(st.st_mode):
				result.files.append(entry)
			else:
				self.logger.debug('Skipping unsupported file {!r}, mode {}'.format(child_rel_path.as_posix(), oct(st.st_mode)))
				result.skipped_count += 1

		result.dirs.sort(key=lambda e: e.name)
		result.files.sort(key=lambda e: e.name)
		return result
