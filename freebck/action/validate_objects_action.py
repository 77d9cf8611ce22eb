import dataclasses
import threading
from typing import List, Optional, Tuple

from typing_extensions import override

from freebck.action import Action
from freebck.db import schema
from freebck.exceptions import ObjectNotFound, HashMismatch, StoreReadError
from freebck.repository import Repository
from freebck.utils.thread_pool import FailFastThreadPool


@dataclasses.dataclass(frozen=True)
class BadObjectItem:
	hash: str
	desc: str


@dataclasses.dataclass
class ValidateObjectsResult:
	total: int = 0
	validated: int = 0
	ok: int = 0
	missing: List[BadObjectItem] = dataclasses.field(default_factory=list)  # the bytes of the object are missing
	unreadable: List[BadObjectItem] = dataclasses.field(default_factory=list)  # the backend failed to read the bytes
	mismatched: List[BadObjectItem] = dataclasses.field(default_factory=list)  # hash or size mismatch
	unreferenced: List[BadObjectItem] = dataclasses.field(default_factory=list)  # waiting for garbage collection

	@property
	def bad_count(self) -> int:
		return len(self.missing) + len(self.unreadable) + len(self.mismatched)


class ValidateObjectsAction(Action[ValidateObjectsResult]):
	def __init__(self, repo: Repository):
		super().__init__(repo)
		self.__result_lock = threading.Lock()

	@override
	def is_interruptable(self) -> bool:
		return True

	def __validate_one(self, result: ValidateObjectsResult, h: str, size: int, ref_count: int):
		bad = self.__check_one(h, size)
		with self.__result_lock:
			if bad is not None:
				getattr(result, bad[0]).append(BadObjectItem(h, bad[1]))
				return
			if ref_count <= 0:
				result.unreferenced.append(BadObjectItem(h, 'object has no reference'))
			result.ok += 1

	def __check_one(self, h: str, size: int) -> Optional[Tuple[str, str]]:
		"""
		:return: (name of the result list, description) if the object is bad, None if it is good
		"""
		try:
			actual_size = self.repo.store.verify(h)
		except ObjectNotFound:
			return 'missing', 'object bytes do not exist'
		except HashMismatch as e:
			return 'mismatched', f'hash mismatch, found {e.actual_hash}'
		except StoreReadError as e:
			return 'unreadable', 'cannot read object: {}'.format(e)

		if actual_size != size:
			return 'mismatched', f'size mismatch, expect {size}, found {actual_size}'
		return None

	def __validate(self, result: ValidateObjectsResult, objects: List[schema.StoredObject]):
		items = [(obj.hash, obj.size, obj.ref_count) for obj in objects]
		with FailFastThreadPool('validator', self.config.get_effective_concurrency()) as pool:
			for h, size, ref_count in items:
				if self.is_interrupted.is_set():
					break
				result.validated += 1
				pool.submit(self.__validate_one, result, h, size, ref_count)

	@override
	def run(self) -> ValidateObjectsResult:
		self.logger.info('Object validation start')
		result = ValidateObjectsResult()

		with self.repo.db.open_session() as session:
			result.total = session.get_object_count()
		cnt = 0
		with self.repo.db.open_session() as session:
			for objects in session.iterate_object_batch():
				if self.is_interrupted.is_set():
					break
				cnt += len(objects)
				self.logger.info('Validating {} / {} objects'.format(cnt, result.total))
				self.__validate(result, objects)

		self.logger.info('Object validation done: total {}, validated {}, ok {}, bad {}, unreferenced {}'.format(
			result.total, result.validated, result.ok, result.bad_count, len(result.unreferenced),
		))
		return result
