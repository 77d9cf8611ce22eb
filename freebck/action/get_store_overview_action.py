import dataclasses

from typing_extensions import override

from freebck.action import Action


@dataclasses.dataclass(frozen=True)
class StoreOverviewResult:
	db_version: int
	hash_method: str

	object_count: int
	object_size_sum: int
	unreferenced_object_count: int
	snapshot_count: int

	db_file_size: int


class GetStoreOverviewAction(Action[StoreOverviewResult]):
	@override
	def run(self) -> StoreOverviewResult:
		db_file_size = self.repo.db.db_path.stat().st_size
		with self.repo.db.open_session() as session:
			meta = session.get_db_meta()
			return StoreOverviewResult(
				db_version=meta.version,
				hash_method=meta.hash_method,

				object_count=session.get_object_count(),
				object_size_sum=session.get_object_size_sum(),
				unreferenced_object_count=session.get_unreferenced_object_count(),
				snapshot_count=session.get_snapshot_count(),

				db_file_size=db_file_size,
			)
