import functools
import re
from typing import Union, Tuple, Dict, NamedTuple

from freebck.utils import misc_utils


def _parse_number(s: str) -> Union[int, float]:
	try:
		value = int(s)
	except ValueError:
		try:
			value = float(s)
		except ValueError:
			raise ValueError('{!r} is not a number'.format(s)) from None
		if value.is_integer():
			value = round(value)
	return value


def _split_unit(s: str) -> Tuple[Union[int, float], str]:
	match = re.fullmatch(r'([-+.\d]+)(\w*)', s.strip())
	if not match:
		raise ValueError('bad value {!r}'.format(s))
	return _parse_number(match.group(1)), match.group(2)


class ValueUnitPair(NamedTuple):
	value: float
	unit: str

	def to_str(self, ndigits: int = 2) -> str:
		if ndigits >= 0:
			return f'{self.value:.{ndigits}f}{self.unit}'
		else:
			return f'{self.value}{self.unit}'


class ByteCount(str):
	"""
	A byte count that is also its own human-readable string, e.g. ``ByteCount('4MiB').value == 4194304``.
	Serializes into config files as the string form
	"""
	_value: int

	_bsi = {'': 1, 'Ki': 2 ** 10, 'Mi': 2 ** 20, 'Gi': 2 ** 30, 'Ti': 2 ** 40, 'Pi': 2 ** 50, 'Ei': 2 ** 60}
	_dsi = {'K': 10 ** 3, 'M': 10 ** 6, 'G': 10 ** 9, 'T': 10 ** 12, 'P': 10 ** 15, 'E': 10 ** 18}

	@classmethod
	@functools.lru_cache
	def __get_unit_map_lowered(cls) -> Dict[str, int]:
		units = {**cls._bsi, **cls._dsi}
		ret = {k.lower(): v for k, v in units.items()}
		ret['k'] = cls._bsi['Ki']  # "4k" means 4096, like most size options do
		return ret

	@classmethod
	def parse_unit(cls, unit: str) -> int:
		ret = cls.__get_unit_map_lowered().get(unit.lower())
		if ret is None:
			raise ValueError('unknown unit {!r}'.format(unit))
		return ret

	def __new__(cls, s: Union[int, str]):
		if isinstance(s, str):
			if len(s) > 0 and s[-1] in 'bB':
				s = s[:-1]
			number, unit = _split_unit(s)
			value = number * cls.parse_unit(unit)
			if isinstance(value, float):
				if not value.is_integer():
					raise ValueError('byte count {!r} is not an integer'.format(s))
				value = int(value)
		elif isinstance(s, int):
			value = s
		else:
			raise TypeError(type(s))

		obj = super().__new__(cls, cls._precise_format(value).to_str(ndigits=-1))
		obj._value = value
		return obj

	@property
	def value(self) -> int:
		return self._value

	@classmethod
	def _auto_format(cls, val: int) -> ValueUnitPair:
		if val < 0:
			uvp = cls._auto_format(-val)
			return ValueUnitPair(-uvp.value, uvp.unit)
		ret = ValueUnitPair(val, 'B')
		for unit, k in cls._bsi.items():
			if val >= k:
				x = val / k
				ret = ValueUnitPair(int(x) if x.is_integer() else x, unit + 'B')
		return ret

	@classmethod
	def _precise_format(cls, val: int) -> ValueUnitPair:
		if val < 0:
			uvp = cls._precise_format(-val)
			return ValueUnitPair(-uvp.value, uvp.unit)
		for unit, k in reversed(cls._bsi.items()):  # high -> low
			if val % k == 0 and val >= k:
				return ValueUnitPair(val // k, unit + 'B')
		return ValueUnitPair(val, 'B')

	def auto_str(self, **kwargs) -> str:
		return self._auto_format(self._value).to_str(**kwargs)

	def __repr__(self) -> str:
		return misc_utils.represent(self, attrs={'value': self._value})
