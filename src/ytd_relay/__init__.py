"""ytd-relay — resolve video URLs into ranked formats and live byte streams.

Built on yt-dlp (executable or Python API) with a strict layered
architecture: pure ``core``, side-effecting ``infra``, and a ``cli``
boundary.
"""

from ytd_relay.version import __version__

__all__: list[str] = ["__version__"]
