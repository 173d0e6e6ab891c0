"""
sngkit — reader and extractor for SNGPKG song archives.

Features:

- Header, metadata and file-index parsing with fail-fast truncation checks.
- Position-keyed XOR unmasking of each payload (16-byte mask, local index).
- Extraction to a native directory or a sandboxed save directory, writing the
  metadata as a ``song.ini`` manifest next to the payloads.
- Batch extraction with per-archive progress callbacks.

The library is silent by default; attach a handler to the ``sngkit`` logger
(or pass ``log=``) to see decode tracing and signature warnings.
"""

import logging

__version__ = "0.1"

__all__ = [
    "constants",
    "reader",
    "archive",
    "keystream",
    "extract",
    "batch",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Importable programmatic API is available via sngkit.reader/sngkit.extract and
# the CLI functions in sngkit.cli (cmd_extract/cmd_batch) which take normal parameters.
