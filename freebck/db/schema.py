from typing import get_type_hints

from sqlalchemy import String, Integer, BigInteger, LargeBinary, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
	def __repr__(self) -> str:
		return '{}({})'.format(
			self.__class__.__name__,
			', '.join(f'{k}={v!r}' for k, v in self.to_dict().items()),
		)

	def to_dict(self) -> dict:
		values = {}
		for name, type_ in get_type_hints(self.__class__).items():
			if name == '__fields_end__':
				break
			if not name.startswith('_') and getattr(type_, '__origin__', None) == Mapped:
				values[name] = getattr(self, name)
		return values


class DbMeta(Base):
	__tablename__ = 'db_meta'

	magic: Mapped[int] = mapped_column(Integer, primary_key=True)
	version: Mapped[int] = mapped_column(Integer)
	hash_method: Mapped[str] = mapped_column(String)


class StoredObject(Base):
	"""
	Bookkeeping of an object in the object store. The bytes live in the storage backend
	"""
	__tablename__ = 'object'

	hash: Mapped[str] = mapped_column(String, primary_key=True)
	size: Mapped[int] = mapped_column(BigInteger, index=True)
	ref_count: Mapped[int] = mapped_column(BigInteger, index=True)
	created: Mapped[int] = mapped_column(BigInteger)  # unix timestamp in seconds

	__fields_end__: bool


class Snapshot(Base):
	__tablename__ = 'snapshot'
	__table_args__ = (
		UniqueConstraint('archive', 'number'),
		{'sqlite_autoincrement': True},
	)

	id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, index=True)
	archive: Mapped[str] = mapped_column(String, index=True)
	number: Mapped[int] = mapped_column(Integer)  # sequence number inside the archive, starts from 1
	root_hash: Mapped[str] = mapped_column(String, index=True)
	started: Mapped[int] = mapped_column(BigInteger)  # unix timestamp in seconds
	finished: Mapped[int] = mapped_column(BigInteger)  # unix timestamp in seconds

	# the encoded Snapshot message
	data: Mapped[bytes] = mapped_column(LargeBinary)

	__fields_end__: bool
