import dataclasses
from pathlib import PurePosixPath
from typing import List, Tuple, Dict

from typing_extensions import override

from freebck.action import Action
from freebck.action.helpers.tree_reader import TreeReader, DirView, BranchError, BRANCH_ERRORS
from freebck.data.messages import FileEntry, SubDirEntry, HashRef
from freebck.repository import Repository


@dataclasses.dataclass(frozen=True)
class DiffResult:
	added: List[str] = dataclasses.field(default_factory=list)
	deleted: List[str] = dataclasses.field(default_factory=list)
	changed: List[Tuple[FileEntry, FileEntry]] = dataclasses.field(default_factory=list)  # (old, new)
	changed_paths: List[str] = dataclasses.field(default_factory=list)
	errors: List[Tuple[str, Exception]] = dataclasses.field(default_factory=list)

	@property
	def diff_count(self) -> int:
		return len(self.added) + len(self.changed) + len(self.deleted)


class DiffSnapshotAction(Action[DiffResult]):
	"""
	Compare the files of two snapshots. Sub-directories with the same hash are skipped without being fetched
	"""
	def __init__(self, repo: Repository, snapshot_id_old: int, snapshot_id_new: int):
		super().__init__(repo)
		self.snapshot_id_old = snapshot_id_old
		self.snapshot_id_new = snapshot_id_new

	@classmethod
	def __is_same_sub_dir(cls, a: SubDirEntry, b: SubDirEntry) -> bool:
		if isinstance(a.content, HashRef) and isinstance(b.content, HashRef):
			return a.content.hash == b.content.hash
		return a.content == b.content

	@classmethod
	def __is_same_file(cls, a: FileEntry, b: FileEntry) -> bool:
		return a.size == b.size and a.content_hash == b.content_hash

	@classmethod
	def __collect_files(cls, view: DirView, path: PurePosixPath, paths: List[str], result: DiffResult):
		for item in view.walk():
			if item.is_file:
				paths.append((path / item.path).as_posix())
			elif isinstance(item.entry, BranchError):
				result.errors.append(((path / item.path).as_posix(), item.entry.error))

	def __open_sub_dir(self, view: DirView, sub_dir: SubDirEntry, path: PurePosixPath, result: DiffResult):
		try:
			return view.reader.open_sub_dir(sub_dir)
		except BRANCH_ERRORS as e:
			result.errors.append((path.as_posix(), e))
			return None

	def __diff_dir(self, old: DirView, new: DirView, path: PurePosixPath, result: DiffResult):
		old_files: Dict[str, FileEntry] = {f.name: f for f in old.files}
		new_files: Dict[str, FileEntry] = {f.name: f for f in new.files}
		for name in sorted(old_files.keys() | new_files.keys()):
			file_path = (path / name).as_posix()
			if name not in new_files:
				result.deleted.append(file_path)
			elif name not in old_files:
				result.added.append(file_path)
			elif not self.__is_same_file(old_files[name], new_files[name]):
				result.changed.append((old_files[name], new_files[name]))
				result.changed_paths.append(file_path)

		old_dirs: Dict[str, SubDirEntry] = {s.name: s for s in old.sub_dirs}
		new_dirs: Dict[str, SubDirEntry] = {s.name: s for s in new.sub_dirs}
		for name in sorted(old_dirs.keys() | new_dirs.keys()):
			dir_path = path / name
			old_dir, new_dir = old_dirs.get(name), new_dirs.get(name)
			if old_dir is not None and new_dir is not None and self.__is_same_sub_dir(old_dir, new_dir):
				continue
			old_view = self.__open_sub_dir(old, old_dir, dir_path, result) if old_dir is not None else None
			new_view = self.__open_sub_dir(new, new_dir, dir_path, result) if new_dir is not None else None
			if old_view is not None and new_view is not None:
				self.__diff_dir(old_view, new_view, dir_path, result)
			elif old_view is not None and new_dir is None:
				self.__collect_files(old_view, dir_path, result.deleted, result)
			elif new_view is not None and old_dir is None:
				self.__collect_files(new_view, dir_path, result.added, result)

	@override
	def run(self) -> DiffResult:
		with self.repo.db.open_session() as session:
			root_hash_old = session.get_snapshot(self.snapshot_id_old).root_hash
			root_hash_new = session.get_snapshot(self.snapshot_id_new).root_hash

		result = DiffResult()
		if root_hash_old != root_hash_new:
			reader = TreeReader(self.repo.store)
			self.__diff_dir(reader.open(root_hash_old), reader.open(root_hash_new), PurePosixPath(), result)
		self.logger.debug('Diff snapshot #{} -> #{}: +{} -{} *{}'.format(
			self.snapshot_id_old, self.snapshot_id_new, len(result.added), len(result.deleted), len(result.changed),
		))
		return result
