"""
Protocol buffers wire format primitives, just enough for the messages in :mod:`freebck.data.messages`

Reference: https://protobuf.dev/programming-guides/encoding/
"""
import enum
import struct
from typing import Iterator, NamedTuple, Union

from freebck.utils import validation_utils


class WireFormatError(ValueError):
	pass


class WireType(enum.IntEnum):
	varint = 0
	i64 = 1
	len = 2
	sgroup = 3
	egroup = 4
	i32 = 5


_MAX_FIELD_NUMBER = 2 ** 29 - 1
_MAX_VARINT_BYTES = 10
_UINT64 = struct.Struct('<Q')
_INT64 = struct.Struct('<q')
_UINT32 = struct.Struct('<I')


class WireWriter:
	def __init__(self):
		self.__buf = bytearray()

	def getvalue(self) -> bytes:
		return bytes(self.__buf)

	def write_varint(self, value: int):
		validation_utils.validate_uint64(value, 'varint')
		while True:
			b = value & 0x7F
			value >>= 7
			if value:
				self.__buf.append(b | 0x80)
			else:
				self.__buf.append(b)
				break

	def write_tag(self, field_number: int, wire_type: WireType):
		if not (1 <= field_number <= _MAX_FIELD_NUMBER):
			raise ValueError('bad field number {}'.format(field_number))
		self.write_varint((field_number << 3) | wire_type.value)

	def write_len_field(self, field_number: int, data: bytes):
		self.write_tag(field_number, WireType.len)
		self.write_varint(len(data))
		self.__buf += data

	def write_string_field(self, field_number: int, value: str):
		self.write_len_field(field_number, value.encode('utf8'))

	def write_fixed64_field(self, field_number: int, value: int):
		self.write_tag(field_number, WireType.i64)
		self.__buf += _UINT64.pack(value)

	def write_sfixed64_field(self, field_number: int, value: int):
		self.write_tag(field_number, WireType.i64)
		self.__buf += _INT64.pack(value)


class WireField(NamedTuple):
	number: int
	wire_type: WireType
	value: Union[int, bytes]  # raw unsigned integer for varint / i64 / i32, payload bytes for len

	def as_fixed64(self) -> int:
		self.__expect(WireType.i64)
		return self.value

	def as_sfixed64(self) -> int:
		self.__expect(WireType.i64)
		return _INT64.unpack(_UINT64.pack(self.value))[0]

	def as_bytes(self) -> bytes:
		self.__expect(WireType.len)
		return self.value

	def as_string(self) -> str:
		self.__expect(WireType.len)
		try:
			return self.value.decode('utf8')
		except UnicodeDecodeError as e:
			raise WireFormatError('field {} is not valid utf8: {}'.format(self.number, e)) from None

	def __expect(self, wire_type: WireType):
		if self.wire_type != wire_type:
			raise WireFormatError('field {} has wire type {}, expected {}'.format(self.number, self.wire_type.name, wire_type.name))


class WireReader:
	def __init__(self, buf: bytes):
		self.__buf = memoryview(buf)
		self.__pos = 0

	def __read_varint(self) -> int:
		value = 0
		for i in range(_MAX_VARINT_BYTES):
			if self.__pos >= len(self.__buf):
				raise WireFormatError('truncated varint at {}'.format(self.__pos))
			b = self.__buf[self.__pos]
			self.__pos += 1
			value |= (b & 0x7F) << (7 * i)
			if not b & 0x80:
				if value > validation_utils.UINT64_MAX:
					raise WireFormatError('varint overflow')
				return value
		raise WireFormatError('varint too long')

	def __read_exact(self, n: int) -> bytes:
		if self.__pos + n > len(self.__buf):
			raise WireFormatError('truncated input, need {} bytes at {}, only {} left'.format(n, self.__pos, len(self.__buf) - self.__pos))
		data = self.__buf[self.__pos:self.__pos + n].tobytes()
		self.__pos += n
		return data

	def __iter__(self) -> Iterator[WireField]:
		while self.__pos < len(self.__buf):
			key = self.__read_varint()
			field_number = key >> 3
			if field_number == 0 or field_number > _MAX_FIELD_NUMBER:
				raise WireFormatError('bad field number {}'.format(field_number))
			try:
				wire_type = WireType(key & 0x07)
			except ValueError:
				raise WireFormatError('unknown wire type {} for field {}'.format(key & 0x07, field_number)) from None

			if wire_type == WireType.varint:
				value = self.__read_varint()
			elif wire_type == WireType.i64:
				value = _UINT64.unpack(self.__read_exact(8))[0]
			elif wire_type == WireType.i32:
				value = _UINT32.unpack(self.__read_exact(4))[0]
			elif wire_type == WireType.len:
				value = self.__read_exact(self.__read_varint())
			else:
				raise WireFormatError('groups are not supported, field {}'.format(field_number))
			yield WireField(field_number, wire_type, value)
