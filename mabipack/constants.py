# Header
PACK_MAGIC = 0x4B434150           # "PACK" read as little-endian u32
PACK_FORMAT_VERSION = 0x102
HEADER_SIZE = 0x220
HEADER_TAG = b"data\\"
HEADER_TAG_OFFSET = 0x20
HEADER_COUNTS_OFFSET = 0x200

# Index records
RECORD_TAIL_SIZE = 0x40           # numeric fields + timestamp block
RECORD_FLAG = 1                   # written verbatim, meaning unknown
TIMESTAMP_COUNT = 5
TIMESTAMP_BLOCK_SIZE = 8 * TIMESTAMP_COUNT

# String block length classes: (max utf-8 length, block size)
STR_CLASSES = (
    (14, 16),
    (30, 32),
    (46, 48),
    (62, 64),
    (94, 96),
)
STR_CLASS_EXPLICIT = 5

# Keystream
SEED_MASK = 0xA9C36DE1
SEED_SHIFT = 7

# Windows FILETIME: 100ns ticks since 1601-01-01
FILETIME_UNIX_EPOCH = 116_444_736_000_000_000
FILETIME_TICKS_PER_MS = 10_000

U32_MAX = 0xFFFFFFFF

DEFAULT_COMPRESS_LEVEL = 6
