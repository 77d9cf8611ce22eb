"""
Content-defined chunking with a gear rolling hash

A boundary is placed after byte ``i`` when the top ``log2(avg_size)`` bits of the rolling hash are all zero.
The hash restarts at every chunk start and is only evaluated after ``min_size`` bytes,
and a boundary is forced at ``max_size`` bytes

The rolling hash runs in the interpreter, one step per byte after ``min_size``, holding the GIL.
Expect a few MB/s per process, and no speedup from running more file workers
"""
import dataclasses
import hashlib
import io
from typing import BinaryIO, Iterator, List, TYPE_CHECKING

from typing_extensions import Self

if TYPE_CHECKING:
	from freebck.config.sub_configs import ChunkerConfig

_MASK_64 = (1 << 64) - 1


def __make_gear_table() -> List[int]:
	return [int.from_bytes(hashlib.sha256(bytes([i])).digest()[:8], 'little') for i in range(256)]


_GEAR = __make_gear_table()


@dataclasses.dataclass(frozen=True)
class Chunk:
	data: bytes
	offset: int
	length: int


class Chunker:
	def __init__(self, min_size: int, avg_size: int, max_size: int):
		if not (0 < min_size <= avg_size <= max_size):
			raise ValueError('chunk sizes must satisfy 0 < min <= avg <= max, got {} {} {}'.format(min_size, avg_size, max_size))
		if avg_size & (avg_size - 1) != 0:
			raise ValueError('average chunk size {} is not a power of 2'.format(avg_size))
		self.min_size = min_size
		self.avg_size = avg_size
		self.max_size = max_size

		bits = avg_size.bit_length() - 1
		self.__mask = ((1 << bits) - 1) << (64 - bits) if bits > 0 else 0

	@classmethod
	def from_config(cls, config: 'ChunkerConfig') -> Self:
		return cls(config.min_size.value, config.avg_size.value, config.max_size.value)

	def __find_cut(self, buf: bytearray) -> int:
		n = len(buf)
		if n <= self.min_size:
			return n
		limit = min(n, self.max_size)
		gear, mask = _GEAR, self.__mask
		h = 0
		for i in range(self.min_size, limit):
			h = ((h << 1) + gear[buf[i]]) & _MASK_64
			if h & mask == 0:
				return i + 1
		return limit

	def __fill(self, stream: BinaryIO, buf: bytearray) -> bool:
		"""
		Read until ``buf`` holds at least max_size bytes

		:return: True if the stream reached its end
		"""
		while len(buf) < self.max_size:
			data = stream.read(self.max_size - len(buf))
			if not data:
				return True
			buf += data
		return False

	def chunk(self, stream: BinaryIO) -> Iterator[Chunk]:
		"""
		Split the stream into chunks. Read errors of the stream propagate as they are

		The boundaries only depend on the stream content, so chunking the same bytes twice gives the same chunks
		"""
		buf = bytearray()
		offset = 0
		eof = False
		while True:
			if not eof:
				eof = self.__fill(stream, buf)
			if len(buf) == 0:
				break
			cut = self.__find_cut(buf)
			data = bytes(buf[:cut])
			del buf[:cut]
			yield Chunk(data=data, offset=offset, length=cut)
			offset += cut

	def chunk_bytes(self, data: bytes) -> Iterator[Chunk]:
		return self.chunk(io.BytesIO(data))
