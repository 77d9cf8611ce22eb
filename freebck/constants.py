import uuid

# names
PROJECT_ID = 'freebck'
INSTANCE_ID = uuid.uuid4().hex[:4]
DEFAULT_ARCHIVE_NAME = 'default'

# storage root layout
DB_FILE_NAME = 'freebck.db'
OBJECTS_DIR_NAME = 'objects'
TEMP_DIR_NAME = 'temp'

# snapshot record allocation
SNAPSHOT_NUMBER_ALLOCATE_MAX_ATTEMPTS = 100
