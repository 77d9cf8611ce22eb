import dataclasses
from pathlib import Path
from typing import IO

from freebck.types.hash_method import Hasher, HashMethod
from freebck.utils.bypass_io import BypassReader


def create_hasher(hash_method: HashMethod) -> Hasher:
	return hash_method.value.create_hasher()


_READ_BUF_SIZE = 128 * 1024


@dataclasses.dataclass(frozen=True)
class SizeAndHash:
	size: int
	hash: str


def calc_reader_size_and_hash(file_obj: IO[bytes], hash_method: HashMethod, *, buf_size: int = _READ_BUF_SIZE) -> SizeAndHash:
	reader = BypassReader(file_obj, hash_method)
	while reader.read(buf_size):
		pass
	return SizeAndHash(reader.get_read_len(), reader.get_hash())


def calc_file_size_and_hash(path: Path, hash_method: HashMethod, **kwargs) -> SizeAndHash:
	with open(path, 'rb') as f:
		return calc_reader_size_and_hash(f, hash_method, **kwargs)


def calc_bytes_hash(buf: bytes, hash_method: HashMethod) -> str:
	hasher = create_hasher(hash_method)
	hasher.update(buf)
	return hasher.hexdigest()

