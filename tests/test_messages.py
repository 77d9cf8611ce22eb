import struct
import unittest

from freebck.data.messages import Snapshot, DirEntry, SubDirEntry, FileEntry, HashRef, Inline
from freebck.data.wire_format import WireWriter, WireType
from freebck.exceptions import CorruptEntry

_HASH_A = 'a' * 64
_HASH_B = 'b' * 64


def _file(name: str, size: int, modified: int = 1700000000) -> FileEntry:
	return FileEntry(name=name, content_hash=_HASH_A, chunk_hash=(_HASH_B,) if size > 0 else (), size=size, modified=modified)


class MessagesTestCase(unittest.TestCase):
	def test_1_snapshot_canonical_bytes(self):
		buf = Snapshot(root_hash='ab', started=1, finished=0).encode()
		self.assertEqual(b'\x0a\x02ab' + b'\x11' + struct.pack('<q', 1), buf)

		self.assertEqual(b'', Snapshot(root_hash='', started=0, finished=0).encode())
		negative = Snapshot(root_hash='x', started=-5, finished=-1)
		self.assertEqual(negative, Snapshot.decode(negative.encode()))

	def test_2_equal_messages_equal_bytes(self):
		def make():
			return DirEntry(
				sub_dir=(SubDirEntry('a', HashRef(_HASH_A)),),
				file=(_file('x', 10), _file('y', 0)),
				size=100,
			)
		self.assertEqual(make().encode(), make().encode())
		self.assertNotEqual(make().encode(), DirEntry(file=(_file('x', 10),), size=10).encode())

	def test_3_dir_entry_round_trip(self):
		inner = DirEntry(file=(_file('x', 3, modified=5),), size=3)
		entry = DirEntry(
			sub_dir=(
				SubDirEntry('a', HashRef(_HASH_A)),
				SubDirEntry('b', Inline(inner)),
				SubDirEntry('c', Inline(DirEntry())),
			),
			file=(_file('f', 0, modified=-7),),
			size=10,
		)
		decoded = DirEntry.decode(entry.encode())
		self.assertEqual(entry, decoded)
		self.assertTrue(decoded.sub_dir[1].is_inline)
		self.assertFalse(decoded.sub_dir[0].is_inline)
		self.assertEqual(inner, decoded.sub_dir[1].content.dir_entry)

	def test_4_empty_dir_entry(self):
		self.assertEqual(b'', DirEntry().encode())
		self.assertEqual(DirEntry(), DirEntry.decode(b''))

		# the oneof field of an empty inline directory is still written
		sub_dir = SubDirEntry('e', Inline(DirEntry()))
		self.assertEqual(b'\x0a\x01e\x1a\x00', sub_dir.encode())
		self.assertEqual(sub_dir, SubDirEntry.decode(sub_dir.encode()))

	def test_5_oneof_both_or_neither(self):
		w = WireWriter()
		w.write_string_field(1, 'a')
		w.write_string_field(2, _HASH_A)
		w.write_len_field(3, b'')
		with self.assertRaises(CorruptEntry):
			SubDirEntry.decode(w.getvalue())

		w = WireWriter()
		w.write_string_field(1, 'a')
		with self.assertRaises(CorruptEntry):
			SubDirEntry.decode(w.getvalue())

		# also rejected when nested in a directory
		w = WireWriter()
		w.write_len_field(1, b'\x0a\x01a')
		with self.assertRaises(CorruptEntry):
			DirEntry.decode(w.getvalue())

		with self.assertRaises(TypeError):
			SubDirEntry('a', _HASH_A)

	def test_6_unknown_fields_skipped(self):
		file = _file('x', 10)
		w = WireWriter()
		w.write_tag(9, WireType.varint)
		w.write_varint(300)
		w.write_len_field(10, b'whatever')
		w.write_tag(11, WireType.i32)
		buf = file.encode() + w.getvalue() + struct.pack('<I', 7)
		self.assertEqual(file, FileEntry.decode(buf))

	def test_7_malformed_input(self):
		buf = _file('x', 10).encode()
		for cut in (1, 5, len(buf) - 1):
			with self.assertRaises(CorruptEntry):
				FileEntry.decode(buf[:cut])

		# wrong wire type for a known field
		w = WireWriter()
		w.write_tag(4, WireType.varint)
		w.write_varint(10)
		with self.assertRaises(CorruptEntry):
			FileEntry.decode(w.getvalue())

		# invalid utf8 name
		w = WireWriter()
		w.write_len_field(1, b'\xff\xfe')
		with self.assertRaises(CorruptEntry):
			FileEntry.decode(w.getvalue())

		# groups
		w = WireWriter()
		w.write_tag(1, WireType.sgroup)
		with self.assertRaises(CorruptEntry):
			Snapshot.decode(w.getvalue())

	def test_8_dir_entry_validation(self):
		def decode(entry: DirEntry):
			return DirEntry.decode(entry.encode())

		with self.assertRaises(CorruptEntry):
			decode(DirEntry(file=(_file('b', 1), _file('a', 1)), size=2))
		with self.assertRaises(CorruptEntry):
			decode(DirEntry(file=(_file('a', 1), _file('a', 1)), size=2))
		with self.assertRaises(CorruptEntry):
			decode(DirEntry(sub_dir=(SubDirEntry('a', Inline(DirEntry())),), file=(_file('a', 1),), size=1))
		with self.assertRaises(CorruptEntry):
			decode(DirEntry(file=(_file('a', 1),), size=2))

		# a sub-directory stored by hash only gives a lower bound of the size
		decode(DirEntry(sub_dir=(SubDirEntry('d', HashRef(_HASH_A)),), file=(_file('a', 1),), size=20))
		with self.assertRaises(CorruptEntry):
			decode(DirEntry(sub_dir=(SubDirEntry('d', HashRef(_HASH_A)),), file=(_file('a', 5),), size=4))

	def test_9_out_of_range_values(self):
		with self.assertRaises(ValueError):
			DirEntry(size=-1).encode()
		with self.assertRaises(ValueError):
			Snapshot(root_hash='', started=2 ** 63, finished=0).encode()

	def test_10_bad_child_names(self):
		for name in ['', '.', '..', '../x', 'a/b', '/abs', 'nul\0name']:
			with self.subTest(name=name):
				with self.assertRaises(CorruptEntry):
					DirEntry.decode(DirEntry(file=(_file(name, 1),), size=1).encode())
				with self.assertRaises(CorruptEntry):
					DirEntry.decode(DirEntry(sub_dir=(SubDirEntry(name, HashRef(_HASH_A)),)).encode())

				# also rejected inside an inline sub-directory
				inner = DirEntry(file=(_file(name, 1),), size=1)
				with self.assertRaises(CorruptEntry):
					DirEntry.decode(DirEntry(sub_dir=(SubDirEntry('d', Inline(inner)),), size=1).encode())

		for name in ['...', '.hidden', 'a b', 'a\\b', '名字']:
			with self.subTest(name=name):
				entry = DirEntry(file=(_file(name, 1),), size=1)
				self.assertEqual(entry, DirEntry.decode(entry.encode()))


if __name__ == '__main__':
	unittest.main()
