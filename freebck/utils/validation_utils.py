from typing import Union, Callable, NoReturn

from freebck.utils import misc_utils

INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1

UINT64_MAX = 2 ** 64 - 1


MessageSupplier = Union[str, Callable[[], str]]


def __raise(msg: MessageSupplier, detail: str) -> NoReturn:
	if callable(msg):
		msg = msg()
	if msg:
		raise ValueError(f'{msg}: {detail}')
	else:
		raise ValueError(detail)


def validate_int64(value: int, msg: MessageSupplier):
	misc_utils.ensure_type(value, int)
	if not (INT64_MIN <= value <= INT64_MAX):
		__raise(msg, f'value {value} out of range [{INT64_MIN}, {INT64_MAX}]')


def validate_uint64(value: int, msg: MessageSupplier):
	misc_utils.ensure_type(value, int)
	if not (0 <= value <= UINT64_MAX):
		__raise(msg, f'value {value} out of range [0, {UINT64_MAX}]')
