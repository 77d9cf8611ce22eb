"""
Actions for all kinds of repository operations
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import TypeVar, Generic

from freebck.config.config import Config
from freebck.repository import Repository

_T = TypeVar('_T')


class Action(Generic[_T], ABC):
	def __init__(self, repo: Repository):
		self.is_interrupted = threading.Event()

		self.repo = repo
		self.logger: logging.Logger = repo.logger
		self.config: Config = repo.config

	@abstractmethod
	def run(self) -> _T:
		...

	def is_interruptable(self) -> bool:
		return False

	def interrupt(self):
		self.is_interrupted.set()
