from typing import Optional

from sqlalchemy import Engine, Inspector
from sqlalchemy.orm import Session

from freebck import logger
from freebck.db import schema, db_constants
from freebck.exceptions import BadDbVersion
from freebck.types.hash_method import HashMethod


class DbMigration:
	DB_MAGIC_INDEX = db_constants.DB_MAGIC_INDEX
	DB_VERSION = db_constants.DB_VERSION

	def __init__(self, engine: Engine, hash_method: HashMethod):
		self.logger = logger.get()
		self.engine = engine
		self.hash_method = hash_method

	def check_and_migrate(self, *, create: bool):
		inspector = Inspector.from_engine(self.engine)
		if inspector.has_table(schema.DbMeta.__tablename__):
			with Session(self.engine) as session, session.begin():
				dbm: Optional[schema.DbMeta] = session.get(schema.DbMeta, self.DB_MAGIC_INDEX)
				if dbm is None:
					raise BadDbVersion('table DbMeta is empty')
				current_version = dbm.version

			if current_version != self.DB_VERSION:
				self.logger.error('The current DB version {} does not match the expected {}'.format(current_version, self.DB_VERSION))
				raise BadDbVersion('DB version mismatch (expect {}, found {})'.format(self.DB_VERSION, current_version))
		else:
			if not create:
				raise BadDbVersion('DbMeta table not found')

			self.logger.info('Table {} does not exist, assuming newly created db, create everything'.format(schema.DbMeta.__tablename__))
			self.__create_the_world()

	def __create_the_world(self):
		schema.Base.metadata.create_all(self.engine)
		with Session(self.engine) as session, session.begin():
			session.add(schema.DbMeta(
				magic=self.DB_MAGIC_INDEX,
				version=self.DB_VERSION,
				hash_method=self.hash_method.name,
			))
