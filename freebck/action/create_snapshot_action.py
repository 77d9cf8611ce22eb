import dataclasses
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import IntegrityError
from typing_extensions import override

from freebck import constants
from freebck.action import Action
from freebck.action.helpers.tree_builder import TreeBuilder
from freebck.action.helpers.tree_reader import TreeReader, DirView, BRANCH_ERRORS
from freebck.data.messages import Snapshot
from freebck.exceptions import SourceReadError, BackupFailed
from freebck.repository import Repository
from freebck.types.build_report import BuildReport
from freebck.types.snapshot_info import SnapshotInfo
from freebck.types.units import ByteCount
from freebck.utils import time_utils


@dataclasses.dataclass(frozen=True)
class CreateSnapshotResult:
	snapshot: SnapshotInfo
	report: BuildReport


class CreateSnapshotAction(Action[CreateSnapshotResult]):
	"""
	One full backup pass. The snapshot record is written last, after every object of its tree is stored,
	so a failed or interrupted pass never leaves a visible snapshot behind
	"""
	def __init__(self, repo: Repository, *, source_path: Optional[Path] = None, archive: Optional[str] = None):
		super().__init__(repo)
		self.source_path = source_path or self.config.source_path
		self.archive = archive or self.config.archive_name

	@override
	def is_interruptable(self) -> bool:
		return True

	def __open_previous_root(self) -> Optional[DirView]:
		if not self.config.backup.reuse_unchanged_files:
			return None
		with self.repo.db.open_session() as session:
			last = session.get_last_snapshot(self.archive)
			if last is None:
				return None
			name, root_hash = '{}/{}'.format(last.archive, last.number), last.root_hash
		try:
			view = TreeReader(self.repo.store).open(root_hash)
		except BRANCH_ERRORS as e:
			self.logger.warning('Cannot open previous snapshot {} for file reusing: {}'.format(name, e))
			return None
		self.logger.debug('Reusing unchanged files from previous snapshot {}'.format(name))
		return view

	def __rollback(self, report: BuildReport):
		references = report.get_references()
		if len(references) == 0:
			return
		self.logger.warning('Error occurs during snapshot creation, releasing {} object references'.format(len(references)))
		for h in references:
			try:
				self.repo.store.release(h)
			except Exception as e:
				self.logger.error('(rollback) release object {} failed: {}'.format(h, e))
		report.drop_references(references)

	def __write_snapshot_record(self, root_hash: str, started: int, finished: int, report: BuildReport) -> SnapshotInfo:
		data = Snapshot(root_hash=root_hash, started=started, finished=finished).encode()
		for _ in range(constants.SNAPSHOT_NUMBER_ALLOCATE_MAX_ATTEMPTS):
			try:
				with self.repo.db.open_session() as session:
					snapshot = session.create_snapshot(
						archive=self.archive,
						number=session.get_max_snapshot_number(self.archive) + 1,
						root_hash=root_hash,
						started=started,
						finished=finished,
						data=data,
					)
					session.add(snapshot)
					session.flush()  # this generates snapshot.id
					return SnapshotInfo.of(snapshot)
			except IntegrityError as e:
				self.logger.warning('Snapshot number allocation conflicted in archive {!r}, retrying: {}'.format(self.archive, e))
		raise BackupFailed('failed to allocate a snapshot number after {} attempts'.format(constants.SNAPSHOT_NUMBER_ALLOCATE_MAX_ATTEMPTS), report)

	@override
	def run(self) -> CreateSnapshotResult:
		started = time_utils.now_timestamp()
		report = BuildReport()
		self.logger.info('Creating snapshot in archive {!r} for path {!r}'.format(self.archive, self.source_path.as_posix()))

		try:
			builder = TreeBuilder(self.repo, report, is_interrupted=self.is_interrupted, previous_root=self.__open_previous_root())
			try:
				tree = builder.build(self.source_path)
			except SourceReadError as e:
				raise BackupFailed('source root {!r} cannot be read'.format(self.source_path.as_posix()), report) from e

			finished = max(started, time_utils.now_timestamp())
			info = self.__write_snapshot_record(tree.root_hash, started, finished, report)
		except Exception as e:
			self.logger.error('Snapshot creation failed: ({}) {}'.format(type(e).__name__, e))
			self.__rollback(report)
			raise

		self.logger.info('Create snapshot {} (#{}, {}) done, root {}, {} files ({} reused), size {}, +{} objects ({}), {} failures'.format(
			info.name, info.id, info.date_str, info.root_hash, report.file_count, report.reused_file_count, ByteCount(report.total_size).auto_str(),
			report.new_object_count, ByteCount(report.new_object_size).auto_str(), len(report.failures),
		))
		return CreateSnapshotResult(snapshot=info, report=report)
