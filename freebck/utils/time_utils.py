import datetime
import time


def as_unix_timestamp(timestamp: float) -> int:
	"""
	Whole seconds since the Unix epoch, truncated toward zero. Pre-epoch times give negative values
	"""
	return int(timestamp)


def now_timestamp() -> int:
	return as_unix_timestamp(time.time())


def timestamp_to_local_date(timestamp: int) -> datetime.datetime:
	return datetime.datetime.fromtimestamp(timestamp)


def timestamp_to_local_date_str(timestamp: int) -> str:
	return timestamp_to_local_date(timestamp).strftime('%Y-%m-%d %H:%M:%S')
