import dataclasses
from pathlib import PurePosixPath
from typing import Union, Iterator, Tuple, Optional

from freebck.data.messages import DirEntry, FileEntry, SubDirEntry, HashRef
from freebck.exceptions import StoreReadError, CorruptEntry, HashMismatch
from freebck.store.object_store import ObjectStore
from freebck.utils import hash_utils

BRANCH_ERRORS = (StoreReadError, CorruptEntry, HashMismatch)


@dataclasses.dataclass(frozen=True)
class BranchError:
	error: Exception
	dir_hash: Optional[str] = None  # the object of the unresolved sub-directory, if stored by hash


@dataclasses.dataclass(frozen=True)
class WalkItem:
	path: PurePosixPath  # relative to the opened directory
	entry: Union[FileEntry, 'DirView', BranchError]

	@property
	def is_file(self) -> bool:
		return isinstance(self.entry, FileEntry)

	@property
	def is_dir(self) -> bool:
		return isinstance(self.entry, DirView)

	@property
	def is_error(self) -> bool:
		return isinstance(self.entry, BranchError)


class DirView:
	"""
	A directory of a stored tree. Sub-directories stored by hash are only fetched when they are opened
	"""
	def __init__(self, reader: 'TreeReader', entry: DirEntry, dir_hash: Optional[str] = None):
		self.reader = reader
		self.entry = entry
		self.hash = dir_hash  # None for inline directories

	@property
	def size(self) -> int:
		return self.entry.size

	@property
	def files(self) -> Tuple[FileEntry, ...]:
		return self.entry.file

	@property
	def sub_dirs(self) -> Tuple[SubDirEntry, ...]:
		return self.entry.sub_dir

	@property
	def sub_dir_names(self) -> Tuple[str, ...]:
		return tuple(s.name for s in self.entry.sub_dir)

	def get_file(self, name: str) -> Optional[FileEntry]:
		for file in self.entry.file:
			if file.name == name:
				return file
		return None

	def get_sub_dir(self, name: str) -> Optional[SubDirEntry]:
		for sub_dir in self.entry.sub_dir:
			if sub_dir.name == name:
				return sub_dir
		return None

	def open_sub_dir(self, name: str) -> 'DirView':
		"""
		:raise KeyError: no such sub-directory
		:raise StoreReadError: the referenced directory cannot be fetched
		:raise CorruptEntry: the referenced directory cannot be decoded
		"""
		sub_dir = self.get_sub_dir(name)
		if sub_dir is None:
			raise KeyError(name)
		return self.reader.open_sub_dir(sub_dir)

	def walk(self) -> Iterator[WalkItem]:
		"""
		Depth-first traversal in entry order: sub-directories then files.
		A sub-directory that cannot be resolved is yielded as a :class:`BranchError` item, and the walk goes on with its siblings
		"""
		yield from self.__walk(PurePosixPath())

	def __walk(self, path: PurePosixPath) -> Iterator[WalkItem]:
		known_size = 0
		all_resolved = True
		for sub_dir in self.entry.sub_dir:
			sub_path = path / sub_dir.name
			try:
				view = self.reader.open_sub_dir(sub_dir)
			except BRANCH_ERRORS as e:
				all_resolved = False
				dir_hash = sub_dir.content.hash if isinstance(sub_dir.content, HashRef) else None
				yield WalkItem(sub_path, BranchError(e, dir_hash))
				continue
			known_size += view.size
			yield WalkItem(sub_path, view)
			yield from view.__walk(sub_path)

		for file in self.entry.file:
			known_size += file.size
			yield WalkItem(path / file.name, file)

		if all_resolved and known_size != self.entry.size:
			yield WalkItem(path, BranchError(CorruptEntry('DirEntry', 'size {} does not match its children {}'.format(self.entry.size, known_size))))


class TreeReader:
	def __init__(self, store: ObjectStore):
		self.store = store

	def load_dir(self, h: str) -> DirEntry:
		return DirEntry.decode(self.store.get(h))

	def open(self, root: Union[str, DirEntry]) -> DirView:
		if isinstance(root, DirEntry):
			return DirView(self, root)
		return DirView(self, self.load_dir(root), root)

	def open_sub_dir(self, sub_dir: SubDirEntry) -> DirView:
		if isinstance(sub_dir.content, HashRef):
			return self.open(sub_dir.content.hash)
		return DirView(self, sub_dir.content.dir_entry)

	def read_file(self, file: FileEntry) -> Iterator[bytes]:
		"""
		Stream the file content chunk by chunk

		:raise CorruptEntry: the chunks do not add up to the file size
		:raise HashMismatch: the content does not match the content hash, checked in paranoid mode only
		"""
		hasher = hash_utils.create_hasher(self.store.hash_method) if self.store.paranoid else None
		total = 0
		for h in file.chunk_hash:
			data = self.store.get(h)
			total += len(data)
			if total > file.size:
				raise CorruptEntry('FileEntry', 'chunks of {!r} exceed its size {}'.format(file.name, file.size))
			if hasher is not None:
				hasher.update(data)
			yield data
		if total != file.size:
			raise CorruptEntry('FileEntry', 'chunks of {!r} add up to {}, expected size {}'.format(file.name, total, file.size))
		if hasher is not None and (actual := hasher.hexdigest()) != file.content_hash:
			raise HashMismatch(file.content_hash, actual)

	def read_file_bytes(self, file: FileEntry) -> bytes:
		return b''.join(self.read_file(file))
