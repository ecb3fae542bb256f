DEFAULT_DATA_PAGE_SIZE = 1024 * 1024
DEFAULT_DATA_PAGE_ROW_LIMIT = 20_000
DEFAULT_ROW_GROUP_SIZE = 100_000
DEFAULT_DICTIONARY_MAX_SIZE = 65_536
DEFAULT_DICTIONARY_PAGE_SIZE_LIMIT = 1024 * 1024

# DELTA_BINARY_PACKED block layout
DELTA_BLOCK_SIZE = 128
DELTA_MINI_BLOCKS = 4

INT96_BYTE_WIDTH = 12
LENGTH_PREFIX_SIZE = 4
