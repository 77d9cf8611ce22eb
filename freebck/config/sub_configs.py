from typing import Any, List

import pathspec
from mcdreforged.api.utils import Serializable

from freebck.types.hash_method import HashMethod
from freebck.types.units import ByteCount


class BackupConfig(Serializable):
	source_root: str = './source'
	ignore_patterns: List[str] = []
	inline_threshold: int = 256
	fail_fast: bool = False
	reuse_unchanged_files: bool = True
	hash_method: HashMethod = HashMethod.sha256

	def validate_attribute(self, attr_name: str, attr_value: Any, **kwargs):
		if attr_name == 'inline_threshold':
			if attr_value < 0:
				raise ValueError('inline_threshold should be >= 0, got {}'.format(attr_value))
		elif attr_name == 'ignore_patterns':
			pathspec.GitIgnoreSpec.from_lines(attr_value)


class ChunkerConfig(Serializable):
	min_size: ByteCount = ByteCount('256KiB')
	avg_size: ByteCount = ByteCount('1MiB')
	max_size: ByteCount = ByteCount('4MiB')

	def on_deserialization(self, **kwargs):
		if not (0 < self.min_size.value <= self.avg_size.value <= self.max_size.value):
			raise ValueError('chunk sizes must satisfy 0 < min_size <= avg_size <= max_size, got {} {} {}'.format(self.min_size, self.avg_size, self.max_size))
		avg = self.avg_size.value
		if avg & (avg - 1) != 0:
			raise ValueError('avg_size {} is not a power of 2'.format(self.avg_size))


class StoreConfig(Serializable):
	paranoid: bool = False
	fsync: bool = True
