"""Core / service layer — business logic and data transformations.

Rules
-----
* No ``print()`` calls.
* No filesystem or network I/O; external work goes through the
  :class:`~ytd_relay.core.protocols.Extractor` protocol.
* No imports from ``cli`` or ``infra``.
* All functions must be fully typed.
"""

from ytd_relay.core.cache import ResolutionCache, run_sweeper
from ytd_relay.core.canonical import canonical_key
from ytd_relay.core.download_service import DownloadService
from ytd_relay.core.metadata_service import MetadataService
from ytd_relay.core.models import (
    ExtractionRequest,
    FormatDescriptor,
    FormatKind,
    ResolvedMedia,
    StreamState,
)
from ytd_relay.core.protocols import ByteSource, Extractor
from ytd_relay.core.stream_proxy import StreamRelay

__all__: list[str] = [
    "ByteSource",
    "DownloadService",
    "ExtractionRequest",
    "Extractor",
    "FormatDescriptor",
    "FormatKind",
    "MetadataService",
    "ResolutionCache",
    "ResolvedMedia",
    "StreamRelay",
    "StreamState",
    "canonical_key",
    "run_sweeper",
]
