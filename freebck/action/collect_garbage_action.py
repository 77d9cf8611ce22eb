from typing import Set

from typing_extensions import override

from freebck.action import Action
from freebck.action.helpers.tree_reader import TreeReader, DirView
from freebck.data.messages import HashRef
from freebck.repository import Repository
from freebck.store.object_store import SweepResult
from freebck.types.units import ByteCount


class CollectGarbageAction(Action[SweepResult]):
	"""
	Delete the objects without references.
	With ``unreachable``, also delete every object that no snapshot reaches,
	e.g. the orphans left by a crashed snapshot creation

	Must not run concurrently with a snapshot creation
	"""
	def __init__(self, repo: Repository, *, unreachable: bool = False):
		super().__init__(repo)
		self.unreachable = unreachable

	@classmethod
	def __mark(cls, reader: TreeReader, view: DirView, reachable: Set[str], visited_dirs: Set[str]):
		# a chunk may have the same bytes, and so the same hash, as a directory object
		for sub_dir in view.sub_dirs:
			if isinstance(sub_dir.content, HashRef):
				reachable.add(sub_dir.content.hash)
				if sub_dir.content.hash in visited_dirs:
					continue
				visited_dirs.add(sub_dir.content.hash)
			cls.__mark(reader, reader.open_sub_dir(sub_dir), reachable, visited_dirs)
		for file in view.files:
			reachable.update(file.chunk_hash)

	def __collect_reachable(self) -> Set[str]:
		with self.repo.db.open_session() as session:
			root_hashes = session.get_all_root_hashes()

		# any unresolvable branch aborts the collection, since what is behind it is unknown
		reader = TreeReader(self.repo.store)
		reachable: Set[str] = set()
		visited_dirs: Set[str] = set()
		for root_hash in root_hashes:
			reachable.add(root_hash)
			if root_hash not in visited_dirs:
				visited_dirs.add(root_hash)
				self.__mark(reader, reader.open(root_hash), reachable, visited_dirs)
		self.logger.info('Found {} reachable objects from {} snapshot roots'.format(len(reachable), len(root_hashes)))
		return reachable

	@override
	def run(self) -> SweepResult:
		self.logger.info('Garbage collection start, unreachable={}'.format(self.unreachable))
		reachable = self.__collect_reachable() if self.unreachable else None
		result = self.repo.store.sweep(reachable=reachable)
		self.logger.info('Garbage collection done, deleted {} objects ({}), {} unknown objects'.format(
			result.deleted_count, ByteCount(result.deleted_size).auto_str(), result.unknown_deleted_count,
		))
		return result
