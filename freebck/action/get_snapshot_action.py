from typing import Optional

from typing_extensions import override

from freebck.action import Action
from freebck.repository import Repository
from freebck.types.snapshot_info import SnapshotInfo


class GetSnapshotAction(Action[SnapshotInfo]):
	def __init__(self, repo: Repository, snapshot_id: int):
		super().__init__(repo)
		self.snapshot_id = snapshot_id

	@override
	def run(self) -> SnapshotInfo:
		with self.repo.db.open_session() as session:
			return SnapshotInfo.of(session.get_snapshot(self.snapshot_id))


class GetLatestSnapshotAction(Action[Optional[SnapshotInfo]]):
	def __init__(self, repo: Repository, archive: Optional[str] = None):
		super().__init__(repo)
		self.archive = archive or self.config.archive_name

	@override
	def run(self) -> Optional[SnapshotInfo]:
		with self.repo.db.open_session() as session:
			snapshot = session.get_last_snapshot(self.archive)
			return SnapshotInfo.of(snapshot) if snapshot is not None else None
