import os
from pathlib import Path, PurePosixPath

from typing_extensions import override

from freebck.action import Action
from freebck.action.helpers.tree_reader import TreeReader, DirView
from freebck.data.messages import FileEntry
from freebck.repository import Repository
from freebck.types.restore_failure import RestoreFailures
from freebck.utils import misc_utils


class RestoreSnapshotAction(Action[RestoreFailures]):
	"""
	Recreate the tree of a snapshot under the target directory

	With ``keep_going``, an entry that cannot be restored is recorded in the returned failures, and the rest is still restored.
	Without it, the first failure is raised
	"""
	def __init__(self, repo: Repository, snapshot_id: int, target_path: Path, *, overwrite: bool = False, keep_going: bool = False):
		super().__init__(repo)
		self.snapshot_id = misc_utils.ensure_type(snapshot_id, int)
		self.target_path = target_path
		self.overwrite = overwrite
		self.keep_going = keep_going

	@override
	def is_interruptable(self) -> bool:
		return True

	def __restore_file(self, reader: TreeReader, file: FileEntry, path: Path):
		if path.exists() or path.is_symlink():
			if not self.overwrite:
				raise FileExistsError('{!r} already exists'.format(path.as_posix()))
			if path.is_dir() and not path.is_symlink():
				raise IsADirectoryError('{!r} is a directory'.format(path.as_posix()))
			path.unlink()

		temp_path = path.with_name('.{}.restoring'.format(path.name))
		try:
			with open(temp_path, 'wb') as f:
				for data in reader.read_file(file):
					if self.is_interrupted.is_set():
						break
					f.write(data)
			if self.is_interrupted.is_set():
				return
			os.replace(temp_path, path)
		finally:
			temp_path.unlink(missing_ok=True)
		os.utime(path, (file.modified, file.modified))

	def __restore_tree(self, reader: TreeReader, root: DirView, failures: RestoreFailures):
		self.target_path.mkdir(parents=True, exist_ok=True)
		for item in root.walk():
			if self.is_interrupted.is_set():
				self.logger.info('Restore interrupted')
				break
			dst = self.target_path / item.path
			if item.is_error:
				self.logger.warning('Cannot restore {!r}: {}'.format(item.path.as_posix(), item.entry.error))
				failures.add(item.path, item.entry.error)
			elif item.is_dir:
				with failures.handling_exception(item.path):
					dst.mkdir(exist_ok=True)
			else:
				with failures.handling_exception(item.path):
					self.__restore_file(reader, item.entry, dst)

	@override
	def run(self) -> RestoreFailures:
		with self.repo.db.open_session() as session:
			snapshot = session.get_snapshot(self.snapshot_id)
			name, root_hash = '{}/{}'.format(snapshot.archive, snapshot.number), snapshot.root_hash

		self.logger.info('Restoring snapshot {} (#{}) to {!r}'.format(name, self.snapshot_id, self.target_path.as_posix()))
		failures = RestoreFailures(self.keep_going)
		reader = TreeReader(self.repo.store)
		with failures.handling_exception(PurePosixPath()):
			self.__restore_tree(reader, reader.open(root_hash), failures)

		if len(failures) > 0:
			self.logger.warning('Restored snapshot {} with {} failures'.format(name, len(failures)))
		else:
			self.logger.info('Restored snapshot {} done'.format(name))
		return failures
