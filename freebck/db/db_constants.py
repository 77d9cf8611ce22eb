DB_MAGIC_INDEX = 0
DB_VERSION = 1
