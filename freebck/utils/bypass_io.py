import io
from typing import Union, TYPE_CHECKING

if TYPE_CHECKING:
	from freebck.types.hash_method import HashMethod


class BypassReader(io.BytesIO):
	"""
	Wraps a readable file object, counting and hashing everything read through it
	"""
	def __init__(self, file_obj, hash_method: 'HashMethod'):
		super().__init__()
		self.file_obj: io.BytesIO = file_obj
		self.read_len = 0
		self.hasher = hash_method.value.create_hasher()

	def read(self, *args, **kwargs):
		data = self.file_obj.read(*args, **kwargs)
		self.read_len += len(data)
		self.hasher.update(data)
		return data

	def readall(self):
		raise NotImplementedError()

	def readinto(self, b: Union[bytearray, memoryview]):
		n = self.file_obj.readinto(b)
		if n:
			self.read_len += n
			self.hasher.update(b[:n])
		return n

	def get_read_len(self) -> int:
		return self.read_len

	def get_hash(self) -> str:
		return self.hasher.hexdigest()

	def __getattribute__(self, item: str):
		if item in (
				'read', 'readall', 'readinto',
				'get_hash', 'get_read_len', 'file_obj', 'hasher', 'read_len',
		):
			return object.__getattribute__(self, item)
		else:
			return self.file_obj.__getattribute__(item)
