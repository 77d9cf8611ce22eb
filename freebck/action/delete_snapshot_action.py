import dataclasses
from typing import List, Tuple

from typing_extensions import override

from freebck.action import Action
from freebck.action.helpers.tree_reader import TreeReader, BRANCH_ERRORS
from freebck.exceptions import ObjectNotFound
from freebck.repository import Repository
from freebck.types.snapshot_info import SnapshotInfo
from freebck.utils import misc_utils


@dataclasses.dataclass(frozen=True)
class DeleteSnapshotResult:
	snapshot: SnapshotInfo
	released_count: int
	unresolved_branch_count: int


class DeleteSnapshotAction(Action[DeleteSnapshotResult]):
	"""
	Delete a snapshot record and release every reference its tree holds.
	No bytes are deleted here, see :class:`CollectGarbageAction`
	"""
	def __init__(self, repo: Repository, snapshot_id: int):
		super().__init__(repo)
		self.snapshot_id = misc_utils.ensure_type(snapshot_id, int)

	def __collect_references(self, root_hash: str) -> Tuple[List[str], int]:
		references = [root_hash]
		unresolved = 0
		try:
			root = TreeReader(self.repo.store).open(root_hash)
		except BRANCH_ERRORS as e:
			self.logger.warning('Cannot open root {} of snapshot #{}: {}'.format(root_hash, self.snapshot_id, e))
			return references, 1

		for item in root.walk():
			if item.is_dir and item.entry.hash is not None:
				references.append(item.entry.hash)
			elif item.is_file:
				references.extend(item.entry.chunk_hash)
			elif item.is_error:
				unresolved += 1
				if item.entry.dir_hash is not None:
					references.append(item.entry.dir_hash)
				self.logger.warning('Cannot resolve {!r} of snapshot #{}, references inside it are kept: {}'.format(item.path.as_posix(), self.snapshot_id, item.entry.error))
		return references, unresolved

	@override
	def run(self) -> DeleteSnapshotResult:
		self.logger.info('Deleting snapshot #{}'.format(self.snapshot_id))
		with self.repo.db.open_session() as session:
			info = SnapshotInfo.of(session.get_snapshot(self.snapshot_id))

		references, unresolved = self.__collect_references(info.root_hash)
		with self.repo.db.open_session() as session:
			session.delete_snapshot(session.get_snapshot(self.snapshot_id))

		for h in references:
			try:
				self.repo.store.release(h)
			except ObjectNotFound:
				self.logger.warning('Object {} referenced by snapshot #{} does not exist'.format(h, self.snapshot_id))

		self.logger.info('Deleted snapshot {} (#{}) done, released {} references'.format(info.name, info.id, len(references)))
		return DeleteSnapshotResult(info, len(references), unresolved)
