import dataclasses
import functools

from typing_extensions import Self

from freebck.data.messages import Snapshot
from freebck.db import schema
from freebck.utils import time_utils


@dataclasses.dataclass(frozen=True)
class SnapshotInfo:
	id: int
	archive: str
	number: int
	root_hash: str
	started: int
	finished: int

	@property
	def name(self) -> str:
		return '{}/{}'.format(self.archive, self.number)

	@functools.cached_property
	def date_str(self) -> str:
		return time_utils.timestamp_to_local_date_str(self.started)

	def to_message(self) -> Snapshot:
		return Snapshot(root_hash=self.root_hash, started=self.started, finished=self.finished)

	@classmethod
	def of(cls, snapshot: schema.Snapshot) -> Self:
		"""
		Notes: should be inside a session
		"""
		return cls(
			id=snapshot.id,
			archive=snapshot.archive,
			number=snapshot.number,
			root_hash=snapshot.root_hash,
			started=snapshot.started,
			finished=snapshot.finished,
		)
