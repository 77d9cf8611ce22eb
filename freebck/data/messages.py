"""
The four backup messages, with a canonical proto3 encoding

    message Snapshot    { string root_hash = 1; sfixed64 started = 2; sfixed64 finished = 3; }
    message DirEntry    { repeated SubDirEntry sub_dir = 1; repeated FileEntry file = 2; fixed64 size = 3; }
    message SubDirEntry { string name = 1; oneof content { string hash = 2; DirEntry inline = 3; } }
    message FileEntry   { string name = 1; string content_hash = 2; repeated string chunk_hash = 3; fixed64 size = 4; sfixed64 modified = 5; }

Singular fields holding their default value are omitted, repeated fields and fields inside ``oneof`` are always written,
so equal messages always encode to equal bytes
"""
import dataclasses
from typing import Tuple, Union, Optional, Iterable

from typing_extensions import Self

from freebck.data.wire_format import WireWriter, WireReader, WireFormatError, WireField
from freebck.exceptions import CorruptEntry
from freebck.utils import validation_utils


def _decode_fields(what: str, buf: bytes) -> Iterable[WireField]:
	try:
		return list(WireReader(buf))
	except WireFormatError as e:
		raise CorruptEntry(what, str(e)) from None


def is_valid_child_name(name: str) -> bool:
	"""
	A child name is a single path component: not empty, not ``.`` or ``..``, without ``/`` or NUL
	"""
	return name not in ('', '.', '..') and '/' not in name and '\0' not in name


def _read_field(what: str, func):
	try:
		return func()
	except WireFormatError as e:
		raise CorruptEntry(what, str(e)) from None


@dataclasses.dataclass(frozen=True)
class Snapshot:
	root_hash: str
	started: int
	finished: int

	def encode(self) -> bytes:
		validation_utils.validate_int64(self.started, 'Snapshot.started')
		validation_utils.validate_int64(self.finished, 'Snapshot.finished')
		w = WireWriter()
		if self.root_hash:
			w.write_string_field(1, self.root_hash)
		if self.started != 0:
			w.write_sfixed64_field(2, self.started)
		if self.finished != 0:
			w.write_sfixed64_field(3, self.finished)
		return w.getvalue()

	@classmethod
	def decode(cls, buf: bytes) -> Self:
		what = 'Snapshot'
		root_hash, started, finished = '', 0, 0
		for field in _decode_fields(what, buf):
			if field.number == 1:
				root_hash = _read_field(what, field.as_string)
			elif field.number == 2:
				started = _read_field(what, field.as_sfixed64)
			elif field.number == 3:
				finished = _read_field(what, field.as_sfixed64)
		return cls(root_hash=root_hash, started=started, finished=finished)


@dataclasses.dataclass(frozen=True)
class FileEntry:
	name: str
	content_hash: str
	chunk_hash: Tuple[str, ...]
	size: int
	modified: int

	def write_to(self, w: WireWriter):
		validation_utils.validate_uint64(self.size, 'FileEntry.size')
		validation_utils.validate_int64(self.modified, 'FileEntry.modified')
		if self.name:
			w.write_string_field(1, self.name)
		if self.content_hash:
			w.write_string_field(2, self.content_hash)
		for h in self.chunk_hash:
			w.write_string_field(3, h)
		if self.size != 0:
			w.write_fixed64_field(4, self.size)
		if self.modified != 0:
			w.write_sfixed64_field(5, self.modified)

	def encode(self) -> bytes:
		w = WireWriter()
		self.write_to(w)
		return w.getvalue()

	@classmethod
	def decode(cls, buf: bytes) -> Self:
		what = 'FileEntry'
		name, content_hash, size, modified = '', '', 0, 0
		chunk_hash = []
		for field in _decode_fields(what, buf):
			if field.number == 1:
				name = _read_field(what, field.as_string)
			elif field.number == 2:
				content_hash = _read_field(what, field.as_string)
			elif field.number == 3:
				chunk_hash.append(_read_field(what, field.as_string))
			elif field.number == 4:
				size = _read_field(what, field.as_fixed64)
			elif field.number == 5:
				modified = _read_field(what, field.as_sfixed64)
		return cls(name=name, content_hash=content_hash, chunk_hash=tuple(chunk_hash), size=size, modified=modified)


@dataclasses.dataclass(frozen=True)
class HashRef:
	"""A sub-directory stored standalone in the object store"""
	hash: str


@dataclasses.dataclass(frozen=True)
class Inline:
	"""A sub-directory embedded into its parent"""
	dir_entry: 'DirEntry'


SubDirContent = Union[HashRef, Inline]


@dataclasses.dataclass(frozen=True)
class SubDirEntry:
	name: str
	content: SubDirContent

	def __post_init__(self):
		if not isinstance(self.content, (HashRef, Inline)):
			raise TypeError('SubDirEntry content must be HashRef or Inline, got {}'.format(type(self.content)))

	@property
	def is_inline(self) -> bool:
		return isinstance(self.content, Inline)

	def write_to(self, w: WireWriter):
		if self.name:
			w.write_string_field(1, self.name)
		if isinstance(self.content, HashRef):
			w.write_string_field(2, self.content.hash)
		else:
			w.write_len_field(3, self.content.dir_entry.encode())

	def encode(self) -> bytes:
		w = WireWriter()
		self.write_to(w)
		return w.getvalue()

	@classmethod
	def decode(cls, buf: bytes) -> Self:
		what = 'SubDirEntry'
		name = ''
		content: Optional[SubDirContent] = None
		for field in _decode_fields(what, buf):
			if field.number == 1:
				name = _read_field(what, field.as_string)
			elif field.number in (2, 3):
				if content is not None:
					raise CorruptEntry(what, 'sub-directory {!r} has more than one content field'.format(name))
				if field.number == 2:
					content = HashRef(_read_field(what, field.as_string))
				else:
					content = Inline(DirEntry.decode(_read_field(what, field.as_bytes)))
		if content is None:
			raise CorruptEntry(what, 'sub-directory {!r} has neither hash nor inline content'.format(name))
		return cls(name=name, content=content)


@dataclasses.dataclass(frozen=True)
class DirEntry:
	sub_dir: Tuple[SubDirEntry, ...] = ()
	file: Tuple[FileEntry, ...] = ()
	size: int = 0

	def validate(self):
		"""
		Check the invariants that can be checked without the object store:
		children sorted by name, child names unique, size consistent with files and inline sub-directories.
		Sub-directories referenced by hash only contribute a lower bound

		:raise CorruptEntry: on violation
		"""
		what = 'DirEntry'
		for kind, names in (('sub_dir', [s.name for s in self.sub_dir]), ('file', [f.name for f in self.file])):
			for name in names:
				if not is_valid_child_name(name):
					raise CorruptEntry(what, 'bad {} name {!r}'.format(kind, name))
			for a, b in zip(names, names[1:]):
				if not a < b:
					raise CorruptEntry(what, '{} names not strictly ordered: {!r} then {!r}'.format(kind, a, b))
		dup = {s.name for s in self.sub_dir}.intersection(f.name for f in self.file)
		if dup:
			raise CorruptEntry(what, 'duplicated child name {!r}'.format(min(dup)))

		known_size = sum(f.size for f in self.file) + sum(s.content.dir_entry.size for s in self.sub_dir if isinstance(s.content, Inline))
		all_known = all(s.is_inline for s in self.sub_dir)
		if (all_known and known_size != self.size) or (not all_known and known_size > self.size):
			raise CorruptEntry(what, 'size {} does not match its children ({} known)'.format(self.size, known_size))

	def encode(self) -> bytes:
		validation_utils.validate_uint64(self.size, 'DirEntry.size')
		w = WireWriter()
		for s in self.sub_dir:
			w.write_len_field(1, s.encode())
		for f in self.file:
			w.write_len_field(2, f.encode())
		if self.size != 0:
			w.write_fixed64_field(3, self.size)
		return w.getvalue()

	@classmethod
	def decode(cls, buf: bytes) -> Self:
		what = 'DirEntry'
		sub_dir, file = [], []
		size = 0
		for field in _decode_fields(what, buf):
			if field.number == 1:
				sub_dir.append(SubDirEntry.decode(_read_field(what, field.as_bytes)))
			elif field.number == 2:
				file.append(FileEntry.decode(_read_field(what, field.as_bytes)))
			elif field.number == 3:
				size = _read_field(what, field.as_fixed64)
		entry = cls(sub_dir=tuple(sub_dir), file=tuple(file), size=size)
		entry.validate()
		return entry
