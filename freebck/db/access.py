import contextlib
from pathlib import Path
from typing import ContextManager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from freebck.db.migration import DbMigration
from freebck.db.session import DbSession
from freebck.exceptions import HashMethodMismatch
from freebck.types.hash_method import HashMethod


class DbAccess:
	"""
	The database of one storage root. Sessions may be opened from any thread
	"""
	def __init__(self, db_path: Path, hash_method: HashMethod, *, create: bool):
		self.db_path = db_path
		self.hash_method = hash_method
		self.__engine = create_engine('sqlite:///' + str(db_path))

		migration = DbMigration(self.__engine, hash_method)
		migration.check_and_migrate(create=create)
		self.__check_hash_method()

	def __check_hash_method(self):
		with self.open_session() as session:
			stored = str(session.get_db_meta().hash_method)
		if stored != self.hash_method.name:
			raise HashMethodMismatch(self.hash_method.name, stored)

	def shutdown(self):
		self.__engine.dispose()

	@contextlib.contextmanager
	def open_session(self) -> ContextManager[DbSession]:
		with Session(self.__engine) as session, session.begin():
			yield DbSession(session)
