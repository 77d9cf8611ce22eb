import dataclasses
from typing import Optional, Collection, List

from freebck import logger
from freebck.db.access import DbAccess
from freebck.exceptions import StoreWriteError, StoreReadError, HashMismatch, ObjectNotFound
from freebck.store.backend import StorageBackend
from freebck.types.hash_method import HashMethod
from freebck.utils import hash_utils, time_utils


@dataclasses.dataclass
class SweepResult:
	deleted_count: int = 0
	deleted_size: int = 0
	unknown_deleted_count: int = 0


class ObjectStore:
	"""
	Content-addressed object store. The bytes live in a :class:`StorageBackend`,
	the sizes and reference counts live in the database

	An object row is only inserted after its bytes are stored, and deleted before its bytes are deleted,
	so every object the database knows about can be read
	"""
	def __init__(self, backend: StorageBackend, db: DbAccess, hash_method: HashMethod, *, paranoid: bool = False):
		self.backend = backend
		self.db = db
		self.hash_method = hash_method
		self.paranoid = paranoid
		self.logger = logger.get()

	def calc_hash(self, data: bytes) -> str:
		return hash_utils.calc_bytes_hash(data, self.hash_method)

	def __check_hash(self, h: str, data: bytes):
		actual = self.calc_hash(data)
		if actual != h:
			raise HashMismatch(h, actual)

	def __backend_read(self, h: str) -> bytes:
		try:
			return self.backend.read(h)
		except ObjectNotFound:
			raise
		except OSError as e:
			raise StoreReadError(h, e) from e

	def put(self, h: str, data: bytes) -> bool:
		"""
		Store the object and take one reference to it.
		If the object already exists, only the reference count changes

		:return: True if the bytes were newly written by this call
		"""
		if not self.hash_method.is_valid_hash(h):
			raise ValueError('bad object hash {!r} for hash method {}'.format(h, self.hash_method.name))
		if self.paranoid:
			self.__check_hash(h, data)
		try:
			created = self.backend.create_if_absent(h, data)
		except OSError as e:
			raise StoreWriteError(h, e) from e
		if not created and self.paranoid:
			self.__check_hash(h, self.__backend_read(h))

		with self.db.open_session() as session:
			session.add_object_reference(h, len(data), time_utils.now_timestamp())
		if created:
			self.logger.debug('Stored new object {} ({} bytes)'.format(h, len(data)))
		return created

	def get(self, h: str) -> bytes:
		data = self.__backend_read(h)
		if self.paranoid:
			self.__check_hash(h, data)
		return data

	def has(self, h: str) -> bool:
		with self.db.open_session() as session:
			return session.has_object(h)

	def add_ref(self, h: str) -> bool:
		"""
		:return: False if the object does not exist, then the caller needs to :meth:`put` it
		"""
		with self.db.open_session() as session:
			return session.increase_ref_count(h)

	def release(self, h: str):
		"""
		Drop one reference. Objects without references are kept until :meth:`sweep`
		"""
		with self.db.open_session() as session:
			if not session.decrease_ref_count(h):
				self.logger.warning('Releasing object {} whose reference count is already 0'.format(h))

	def ref_count(self, h: str) -> int:
		with self.db.open_session() as session:
			return session.get_object(h).ref_count

	def verify(self, h: str) -> int:
		"""
		:return: the size of the verified bytes
		:raise ObjectNotFound: the bytes are missing
		:raise HashMismatch: the bytes do not match the hash
		"""
		data = self.__backend_read(h)
		self.__check_hash(h, data)
		return len(data)

	def __delete_objects(self, hashes: List[str]):
		if len(hashes) == 0:
			return
		with self.db.open_session() as session:
			session.delete_objects(hashes)
		for h in hashes:
			try:
				self.backend.delete(h)
			except OSError as e:
				raise StoreWriteError(h, e) from e

	def sweep(self, *, reachable: Optional[Collection[str]] = None) -> SweepResult:
		"""
		Delete objects without references. If the set of reachable objects is given,
		also delete every other object, including the backend keys that the database does not know

		Must not run concurrently with a snapshot creation
		"""
		result = SweepResult()
		with self.db.open_session() as session:
			to_delete = {obj.hash: obj.size for obj in session.get_unreferenced_objects()}
			if reachable is not None:
				for obj_batch in session.iterate_object_batch():
					for obj in obj_batch:
						if obj.hash not in reachable:
							to_delete[obj.hash] = obj.size

		hashes = list(to_delete.keys())
		self.__delete_objects(hashes)
		result.deleted_count += len(hashes)
		result.deleted_size += sum(to_delete.values())

		if reachable is not None:
			with self.db.open_session() as session:
				known = set(session.get_all_object_hashes())
			for key in list(self.backend.iterate_keys()):
				if key not in known and key not in reachable:
					self.logger.debug('Deleting unknown object {}'.format(key))
					try:
						if self.backend.delete(key):
							result.unknown_deleted_count += 1
					except OSError as e:
						raise StoreWriteError(key, e) from e
		return result
