"""Query GPU usage of remote hosts over ssh and show it as one table."""

from .fetch import (
    CsvError,
    FetchTimeout,
    GpuRecord,
    HostError,
    HostRecord,
    HostResult,
    MetricParseError,
    SshError,
    fetch_hosts,
)

__version__ = "0.1.0"
