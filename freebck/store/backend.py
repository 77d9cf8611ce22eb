import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Dict, List

from typing_extensions import override

from freebck.exceptions import ObjectNotFound


class StorageBackend(ABC):
	"""
	A durable key -> bytes mapping. Keys are object hashes. Stored values are never modified

	Implementations raise :class:`ObjectNotFound` for absent keys, and let other I/O errors propagate as :class:`OSError`
	"""

	@abstractmethod
	def create_if_absent(self, key: str, data: bytes) -> bool:
		"""
		Atomically store the value, unless the key already exists. Safe to be called concurrently with the same key

		:return: True if this call created the value, False if it already existed
		"""
		...

	@abstractmethod
	def read(self, key: str) -> bytes:
		...

	@abstractmethod
	def exists(self, key: str) -> bool:
		...

	@abstractmethod
	def delete(self, key: str) -> bool:
		"""
		:return: if the key existed
		"""
		...

	@abstractmethod
	def iterate_keys(self) -> Iterator[str]:
		...


class LocalFileBackend(StorageBackend):
	"""
	Files at ``<objects_path>/<hash[:2]>/<hash>``. New files are written into the temp directory first,
	then hard-linked into place, so a reader never sees a partially written object
	"""
	def __init__(self, objects_path: Path, temp_path: Path, *, fsync: bool = True):
		self.objects_path = objects_path
		self.temp_path = temp_path
		self.fsync = fsync

	def get_object_path(self, key: str) -> Path:
		if len(key) <= 2:
			raise ValueError(f'hash {key!r} too short')
		return self.objects_path / key[:2] / key

	@override
	def create_if_absent(self, key: str, data: bytes) -> bool:
		path = self.get_object_path(key)
		if path.is_file():
			return False

		path.parent.mkdir(parents=True, exist_ok=True)
		self.temp_path.mkdir(parents=True, exist_ok=True)
		fd, temp_file = tempfile.mkstemp(dir=self.temp_path, prefix=key[:16] + '.', suffix='.tmp')
		try:
			with os.fdopen(fd, 'wb') as f:
				f.write(data)
				if self.fsync:
					f.flush()
					os.fsync(f.fileno())
			try:
				os.link(temp_file, path)
			except FileExistsError:
				# another writer won
				return False
			return True
		finally:
			os.unlink(temp_file)

	@override
	def read(self, key: str) -> bytes:
		try:
			with open(self.get_object_path(key), 'rb') as f:
				return f.read()
		except FileNotFoundError:
			raise ObjectNotFound(key) from None

	@override
	def exists(self, key: str) -> bool:
		return self.get_object_path(key).is_file()

	@override
	def delete(self, key: str) -> bool:
		try:
			self.get_object_path(key).unlink()
		except FileNotFoundError:
			return False
		return True

	@override
	def iterate_keys(self) -> Iterator[str]:
		if not self.objects_path.is_dir():
			return
		for sub_dir in sorted(self.objects_path.iterdir()):
			if not sub_dir.is_dir():
				continue
			for name in sorted(os.listdir(sub_dir)):
				if name.startswith(sub_dir.name) and (sub_dir / name).is_file():
					yield name


class MemoryBackend(StorageBackend):
	def __init__(self):
		self.__data: Dict[str, bytes] = {}
		self.__lock = threading.Lock()

	@override
	def create_if_absent(self, key: str, data: bytes) -> bool:
		with self.__lock:
			if key in self.__data:
				return False
			self.__data[key] = bytes(data)
			return True

	@override
	def read(self, key: str) -> bytes:
		with self.__lock:
			try:
				return self.__data[key]
			except KeyError:
				raise ObjectNotFound(key) from None

	@override
	def exists(self, key: str) -> bool:
		with self.__lock:
			return key in self.__data

	@override
	def delete(self, key: str) -> bool:
		with self.__lock:
			return self.__data.pop(key, None) is not None

	@override
	def iterate_keys(self) -> Iterator[str]:
		with self.__lock:
			keys: List[str] = sorted(self.__data.keys())
		yield from keys
