from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
	from freebck.types.build_report import BuildReport


class FreebckError(Exception):
	pass


class SourceReadError(FreebckError):
	"""
	A source file or directory is unreadable, or vanished during the scan
	"""
	def __init__(self, path: Path, cause: Optional[BaseException] = None):
		super().__init__('cannot read source {!r}: {}'.format(str(path), cause))
		self.path = path
		self.cause = cause


class StoreWriteError(FreebckError):
	def __init__(self, object_hash: str, cause: Optional[BaseException] = None):
		super().__init__('cannot write object {}: {}'.format(object_hash, cause))
		self.object_hash = object_hash
		self.cause = cause


class StoreReadError(FreebckError):
	def __init__(self, object_hash: str, cause: Optional[BaseException] = None):
		super().__init__('cannot read object {}: {}'.format(object_hash, cause))
		self.object_hash = object_hash
		self.cause = cause


class ObjectNotFound(StoreReadError):
	def __init__(self, object_hash: str):
		super().__init__(object_hash, None)

	def __str__(self):
		return 'object {} not found'.format(self.object_hash)


class CorruptEntry(FreebckError):
	"""
	Decoded bytes that violate the schema. Never repaired silently
	"""
	def __init__(self, what: str, reason: str):
		super().__init__('corrupt {}: {}'.format(what, reason))
		self.what = what
		self.reason = reason


class HashMismatch(FreebckError):
	def __init__(self, object_hash: str, actual_hash: str):
		super().__init__('object {} has actual hash {}'.format(object_hash, actual_hash))
		self.object_hash = object_hash
		self.actual_hash = actual_hash


class SnapshotNotFound(FreebckError):
	def __init__(self, snapshot_id: int):
		super().__init__('snapshot #{} not found'.format(snapshot_id))
		self.snapshot_id = snapshot_id


class BackupInterrupted(FreebckError):
	pass


class BackupFailed(FreebckError):
	def __init__(self, message: str, report: 'BuildReport'):
		super().__init__(message)
		self.report = report


class BadDbVersion(FreebckError):
	pass


class HashMethodMismatch(FreebckError):
	def __init__(self, configured: str, stored: str):
		super().__init__('hash method mismatch, configured {!r}, storage root uses {!r}'.format(configured, stored))
		self.configured = configured
		self.stored = stored
