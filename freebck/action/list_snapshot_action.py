from typing import List, Optional

from typing_extensions import override

from freebck.action import Action
from freebck.repository import Repository
from freebck.types.snapshot_info import SnapshotInfo


class ListSnapshotAction(Action[List[SnapshotInfo]]):
	"""
	Newest first
	"""
	def __init__(self, repo: Repository, *, archive: Optional[str] = None, limit: Optional[int] = None, offset: Optional[int] = None):
		super().__init__(repo)
		self.archive = archive
		self.limit = limit
		self.offset = offset

	@override
	def run(self) -> List[SnapshotInfo]:
		with self.repo.db.open_session() as session:
			snapshots = session.list_snapshots(archive=self.archive, limit=self.limit, offset=self.offset)
			return [SnapshotInfo.of(snapshot) for snapshot in snapshots]
