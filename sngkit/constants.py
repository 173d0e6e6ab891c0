import struct


# Magic and layout
FILE_IDENTIFIER = b"SNGPKG"  # 6 bytes, no terminator
MASK_SIZE = 16

# key[i] = mask[i % 16] ^ (i & 0xFF) repeats every 256 positions
KEYSTREAM_PERIOD = 256

# identifier, version u32, mask
HEADER_STRUCT = struct.Struct("<6sI16s")
HEADER_SIZE = HEADER_STRUCT.size  # 26

U8 = struct.Struct("<B")
U32 = struct.Struct("<I")
I32 = struct.Struct("<i")
U64 = struct.Struct("<Q")

# Extraction
MANIFEST_NAME = "song.ini"
MANIFEST_SECTION = "song"
ARCHIVE_SUFFIX = ".sng"

# How many leading bytes the decode trace dumps per payload
TRACE_DUMP_LEN = 16
