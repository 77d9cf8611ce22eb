from typing import Optional, Sequence, List, TypeVar, Iterator

from sqlalchemy import select, delete, update, desc, func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session
from typing_extensions import TypedDict, NotRequired, Unpack

from freebck.db import schema, db_constants
from freebck.exceptions import ObjectNotFound, SnapshotNotFound
from freebck.utils import collection_utils, validation_utils

_T = TypeVar('_T')


# make type checker happy
def _list_it(seq: Sequence[_T]) -> List[_T]:
	if not isinstance(seq, list):
		seq = list(seq)
	return seq


def _int_or_0(value: Optional[int]) -> int:
	if value is None:
		return 0
	return int(value)


class DbSession:
	def __init__(self, session: Session):
		self.session = session

		# the limit in old sqlite (https://www.sqlite.org/limits.html#max_variable_number)
		self.__safe_var_limit = 999 - 20

	# ========================= General Database Operations =========================

	def add(self, obj: schema.Base):
		self.session.add(obj)

	def flush(self):
		self.session.flush()

	# ==================================== DbMeta ====================================

	def get_db_meta(self) -> schema.DbMeta:
		meta: Optional[schema.DbMeta] = self.session.get(schema.DbMeta, db_constants.DB_MAGIC_INDEX)
		if meta is None:
			raise ValueError('None db meta')
		return meta

	# ==================================== Object ====================================

	def get_object_opt(self, h: str) -> Optional[schema.StoredObject]:
		return self.session.get(schema.StoredObject, h)

	def get_object(self, h: str) -> schema.StoredObject:
		obj = self.get_object_opt(h)
		if obj is None:
			raise ObjectNotFound(h)
		return obj

	def has_object(self, h: str) -> bool:
		s = select(func.count()).select_from(schema.StoredObject).where(schema.StoredObject.hash == h)
		return _int_or_0(self.session.execute(s).scalar_one()) > 0

	def add_object_reference(self, h: str, size: int, created: int):
		"""
		Insert the object with one reference, or add one reference if it already exists, in a single statement
		"""
		validation_utils.validate_int64(size, 'object size')
		stmt = sqlite_insert(schema.StoredObject).values(hash=h, size=size, ref_count=1, created=created)
		stmt = stmt.on_conflict_do_update(
			index_elements=[schema.StoredObject.hash],
			set_={'ref_count': schema.StoredObject.ref_count + 1},
		)
		self.session.execute(stmt)

	def increase_ref_count(self, h: str) -> bool:
		"""
		:return: False if the object does not exist
		"""
		stmt = (
			update(schema.StoredObject).
			where(schema.StoredObject.hash == h).
			values(ref_count=schema.StoredObject.ref_count + 1).
			execution_options(synchronize_session=False)
		)
		return self.session.execute(stmt).rowcount > 0

	def decrease_ref_count(self, h: str) -> bool:
		"""
		:return: False if the reference count is already 0
		"""
		stmt = (
			update(schema.StoredObject).
			where(schema.StoredObject.hash == h, schema.StoredObject.ref_count > 0).
			values(ref_count=schema.StoredObject.ref_count - 1).
			execution_options(synchronize_session=False)
		)
		if self.session.execute(stmt).rowcount > 0:
			return True
		if not self.has_object(h):
			raise ObjectNotFound(h)
		return False

	def get_object_count(self) -> int:
		return _int_or_0(self.session.execute(select(func.count()).select_from(schema.StoredObject)).scalar_one())

	def get_object_size_sum(self) -> int:
		return _int_or_0(self.session.execute(func.sum(schema.StoredObject.size).select()).scalar_one())

	def list_objects(self, limit: Optional[int] = None, offset: Optional[int] = None) -> List[schema.StoredObject]:
		s = select(schema.StoredObject).order_by(schema.StoredObject.hash)
		if limit is not None:
			s = s.limit(limit)
		if offset is not None:
			s = s.offset(offset)
		return _list_it(self.session.execute(s).scalars().all())

	def iterate_object_batch(self, *, batch_size: int = 1000) -> Iterator[List[schema.StoredObject]]:
		limit, offset = batch_size, 0
		while True:
			objects = self.list_objects(limit=limit, offset=offset)
			if len(objects) == 0:
				break
			yield objects
			offset += limit

	def get_all_object_hashes(self) -> List[str]:
		return _list_it(self.session.execute(select(schema.StoredObject.hash)).scalars().all())

	def get_unreferenced_objects(self) -> List[schema.StoredObject]:
		s = select(schema.StoredObject).where(schema.StoredObject.ref_count <= 0)
		return _list_it(self.session.execute(s).scalars().all())

	def get_unreferenced_object_count(self) -> int:
		s = select(func.count()).select_from(schema.StoredObject).where(schema.StoredObject.ref_count <= 0)
		return _int_or_0(self.session.execute(s).scalar_one())

	def delete_objects(self, hashes: List[str]):
		for view in collection_utils.slicing_iterate(hashes, self.__safe_var_limit):
			self.session.execute(delete(schema.StoredObject).where(schema.StoredObject.hash.in_(view)))

	# =================================== Snapshot ===================================

	class CreateSnapshotKwargs(TypedDict):
		archive: str
		number: int
		root_hash: str
		started: int
		finished: int
		data: bytes
		id: NotRequired[int]

	@classmethod
	def create_snapshot(cls, **kwargs: Unpack[CreateSnapshotKwargs]) -> schema.Snapshot:
		"""
		Notes: the snapshot id is not generated yet. Invoke :meth:`flush` to generate the snapshot id
		"""
		validation_utils.validate_int64(kwargs['started'], 'snapshot started')
		validation_utils.validate_int64(kwargs['finished'], 'snapshot finished')
		return schema.Snapshot(**kwargs)

	def get_snapshot_count(self, archive: Optional[str] = None) -> int:
		s = select(func.count()).select_from(schema.Snapshot)
		if archive is not None:
			s = s.where(schema.Snapshot.archive == archive)
		return _int_or_0(self.session.execute(s).scalar_one())

	def get_snapshot_opt(self, snapshot_id: int) -> Optional[schema.Snapshot]:
		return self.session.get(schema.Snapshot, snapshot_id)

	def get_snapshot(self, snapshot_id: int) -> schema.Snapshot:
		snapshot = self.get_snapshot_opt(snapshot_id)
		if snapshot is None:
			raise SnapshotNotFound(snapshot_id)
		return snapshot

	def get_last_snapshot(self, archive: str) -> Optional[schema.Snapshot]:
		s = select(schema.Snapshot).where(schema.Snapshot.archive == archive).order_by(desc(schema.Snapshot.number)).limit(1)
		snapshots = _list_it(self.session.execute(s).scalars().all())
		return snapshots[0] if snapshots else None

	def get_max_snapshot_number(self, archive: str) -> int:
		s = select(func.max(schema.Snapshot.number)).where(schema.Snapshot.archive == archive)
		return _int_or_0(self.session.execute(s).scalar_one())

	def list_snapshots(self, archive: Optional[str] = None, limit: Optional[int] = None, offset: Optional[int] = None) -> List[schema.Snapshot]:
		s = select(schema.Snapshot)
		if archive is not None:
			s = s.where(schema.Snapshot.archive == archive)
		s = s.order_by(desc(schema.Snapshot.id))
		if offset is not None:
			s = s.offset(offset)
		if limit is not None:
			s = s.limit(limit)
		return _list_it(self.session.execute(s).scalars().all())

	def get_all_root_hashes(self) -> List[str]:
		return _list_it(self.session.execute(select(schema.Snapshot.root_hash).distinct()).scalars().all())

	def delete_snapshot(self, snapshot: schema.Snapshot):
		self.session.delete(snapshot)
