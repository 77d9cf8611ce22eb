import json
from pathlib import Path

from mcdreforged.api.utils import Serializable
from typing_extensions import Self

from freebck import constants
from freebck.config.sub_configs import BackupConfig, ChunkerConfig, StoreConfig


class Config(Serializable):
	debug: bool = False
	storage_root: str = './fb_files'
	archive_name: str = constants.DEFAULT_ARCHIVE_NAME
	concurrency: int = 0

	backup: BackupConfig = BackupConfig()
	chunker: ChunkerConfig = ChunkerConfig()
	store: StoreConfig = StoreConfig()

	# ==================== Load / Save ====================

	@classmethod
	def load(cls, path: Path) -> Self:
		"""
		Read the config from a json file. A missing file gives the default config
		"""
		if not path.is_file():
			return cls.get_default()
		with open(path, 'r', encoding='utf8') as f:
			return cls.deserialize(json.load(f))

	def save(self, path: Path):
		path.parent.mkdir(parents=True, exist_ok=True)
		with open(path, 'w', encoding='utf8') as f:
			json.dump(self.serialize(), f, indent=4, ensure_ascii=False)

	# ==================== Field getters ====================

	def get_effective_concurrency(self) -> int:
		if self.concurrency == 0:
			import multiprocessing
			return max(1, int(multiprocessing.cpu_count() * 0.5))
		else:
			return max(1, self.concurrency)

	@property
	def storage_path(self) -> Path:
		return Path(self.storage_root)

	@property
	def db_path(self) -> Path:
		return self.storage_path / constants.DB_FILE_NAME

	@property
	def objects_path(self) -> Path:
		return self.storage_path / constants.OBJECTS_DIR_NAME

	@property
	def temp_path(self) -> Path:
		return self.storage_path / constants.TEMP_DIR_NAME

	@property
	def source_path(self) -> Path:
		return Path(self.backup.source_root)
