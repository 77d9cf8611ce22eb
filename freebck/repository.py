import logging
from typing import Optional

from freebck import logger
from freebck.config.config import Config
from freebck.db.access import DbAccess
from freebck.exceptions import FreebckError
from freebck.store.backend import StorageBackend, LocalFileBackend
from freebck.store.object_store import ObjectStore
from freebck.types.hash_method import HashMethod


class Repository:
	"""
	One storage root: its database and its object store, opened with one :class:`Config`.
	Everything that needs configuration reads it from here
	"""
	def __init__(self, config: Config, *, backend: Optional[StorageBackend] = None, create: bool = True):
		self.config = config
		self.logger: logging.Logger = logger.get()
		if config.debug:
			logger.set_debug(True)
			self.logger.debug('debug on')

		if create:
			config.storage_path.mkdir(parents=True, exist_ok=True)
		self.db = DbAccess(config.db_path, config.backup.hash_method, create=create)
		if not config.backup.hash_method.is_available():
			self.db.shutdown()
			raise FreebckError('hash method {} is not available, install the package it needs'.format(config.backup.hash_method.name))
		if backend is None:
			backend = LocalFileBackend(config.objects_path, config.temp_path, fsync=config.store.fsync)
		self.store = ObjectStore(backend, self.db, config.backup.hash_method, paranoid=config.store.paranoid)

	@property
	def hash_method(self) -> HashMethod:
		return self.config.backup.hash_method

	def close(self):
		self.db.shutdown()

	def __enter__(self):
		return self

	def __exit__(self, exc_type, exc_val, exc_tb):
		self.close()
