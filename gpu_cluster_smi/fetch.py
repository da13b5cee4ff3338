"""
Fetch and parse `nvidia-smi` output from remote hosts over SSH.

One thread per host runs `ssh <host> nvidia-smi --query-gpu=... --format=csv`,
parses the CSV into GpuRecords and reports a HostResult. Failures are kept
per host and never abort the other hosts.
"""
import csv
import io
import logging
import re
import subprocess
import threading
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

NVIDIA_SMI_QUERY = "--query-gpu=index,gpu_name,memory.total,memory.used,utilization.gpu"
NVIDIA_SMI_FORMAT = "--format=csv"
CSV_FIELD_COUNT = 5

_NON_NUMERIC = re.compile(r"[^0-9.]+")


class MetricParseError(ValueError):
    """A metric string held no usable number."""


class HostError(Exception):
    """Base class for per-host failures."""


class SshError(HostError):
    """ssh could not be run or exited non-zero."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"SSH error: {self.message}"


class FetchTimeout(SshError):
    def __init__(self, timeout: float):
        super().__init__(f"timed out after {timeout:g}s")
        self.timeout = timeout


class CsvError(HostError):
    """nvidia-smi output could not be parsed."""

    def __init__(self, cause: Exception):
        super().__init__(str(cause))
        self.cause = cause

    def __str__(self) -> str:
        return str(self.cause)


@dataclass
class GpuRecord:
    index: int
    name: str
    total_memory: float  # MB
    used_memory: float  # MB
    utilization: float  # 0..1

    @property
    def memory_usage(self) -> float:
        if self.total_memory <= 0:
            return 0.0
        return self.used_memory / self.total_memory


@dataclass
class HostRecord:
    hostname: str
    gpu_records: list = field(default_factory=list)


@dataclass
class HostResult:
    hostname: str
    record: HostRecord | None = None
    error: HostError | None = None

    def __post_init__(self):
        if (self.record is None) == (self.error is None):
            raise ValueError(f"HostResult for {self.hostname} needs exactly one of record or error")

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_metric(text: str) -> float:
    """Parse a number out of a string with units, e.g. '1234 MiB' -> 1234.0."""
    stripped = _NON_NUMERIC.sub("", text)
    try:
        return float(stripped)
    except ValueError:
        raise MetricParseError(f"no numeric value in {text!r}") from None


def parse_record(row: list) -> GpuRecord:
    """Map one raw nvidia-smi CSV row to a GpuRecord.

    The name column carries a leading space in `--format=csv` output, so its
    first character is dropped. Utilization is turned from percent into a ratio.
    """
    if len(row) != CSV_FIELD_COUNT:
        raise MetricParseError(f"expected {CSV_FIELD_COUNT} fields, got {len(row)}: {row!r}")
    index, name, total_memory, used_memory, utilization = row
    gpu_index = int(index)
    if gpu_index < 0:
        raise MetricParseError(f"negative GPU index {gpu_index}")
    return GpuRecord(
        index=gpu_index,
        name=name[1:],
        total_memory=parse_metric(total_memory),
        used_memory=parse_metric(used_memory),
        utilization=parse_metric(utilization) / 100.0,
    )


def parse_csv(hostname: str, data: bytes) -> HostRecord:
    """Parse raw `nvidia-smi --format=csv` bytes; the first row is the header."""
    try:
        reader = csv.reader(io.StringIO(data.decode("utf-8")))
        rows = [row for row in reader if row]
        gpu_records = []
        for line_no, row in enumerate(rows[1:], start=2):
            try:
                gpu_records.append(parse_record(row))
            except ValueError as e:
                raise MetricParseError(f"line {line_no}: {e}") from e
    except (ValueError, csv.Error) as e:
        raise CsvError(e) from e
    return HostRecord(hostname=hostname, gpu_records=gpu_records)


def build_ssh_command(hostname: str, user: str | None = None, ssh_options=()) -> list:
    ssh_target = f"{user}@{hostname}" if user else hostname
    return ["ssh", *ssh_options, ssh_target, "nvidia-smi", NVIDIA_SMI_QUERY, NVIDIA_SMI_FORMAT]


def fetch(hostname: str, user: str | None = None, ssh_options=(), timeout: float | None = None) -> bytes:
    """Run nvidia-smi on `hostname` over ssh and return its stdout."""
    cmd = build_ssh_command(hostname, user, ssh_options)
    logger.debug("Running %s", " ".join(cmd))
    try:
        process = subprocess.run(cmd, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise FetchTimeout(timeout) from None
    except FileNotFoundError:
        raise SshError("ssh command not found. Is OpenSSH client installed?") from None

    if process.returncode != 0:
        error_msg = process.stderr.decode("utf-8", errors="replace").strip()
        if not error_msg:
            error_msg = f"exit code {process.returncode}"
        raise SshError(error_msg)
    return process.stdout


def fetch_host(hostname: str, user: str | None = None, ssh_options=(), timeout: float | None = None) -> HostResult:
    """Fetch and parse one host, capturing any HostError in the result."""
    try:
        data = fetch(hostname, user=user, ssh_options=ssh_options, timeout=timeout)
        record = parse_csv(hostname, data)
    except HostError as e:
        logger.debug("%s: %s", hostname, e)
        return HostResult(hostname=hostname, error=e)
    logger.debug("%s: %d GPU(s)", hostname, len(record.gpu_records))
    return HostResult(hostname=hostname, record=record)


def fetch_hosts(hostnames, user: str | None = None, ssh_options=(), timeout: float | None = None,
                max_workers: int | None = None) -> list:
    """Query every host concurrently and return one HostResult per hostname, in input order.

    One thread is started per host. `max_workers` caps how many fetches run at
    once; by default there is no cap.
    """
    hostnames = list(hostnames)
    results = [None] * len(hostnames)
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")
    slots = threading.BoundedSemaphore(max_workers) if max_workers is not None else None

    def fetch_into_slot(position, hostname):
        try:
            if slots is None:
                results[position] = fetch_host(hostname, user, ssh_options, timeout)
            else:
                with slots:
                    results[position] = fetch_host(hostname, user, ssh_options, timeout)
        except Exception as e:  # every host gets a result
            logger.exception("Unexpected error fetching %s", hostname)
            results[position] = HostResult(hostname=hostname, error=SshError(f"Monitor Error: {e}"))

    threads = []
    for position, hostname in enumerate(hostnames):
        thread = threading.Thread(target=fetch_into_slot, args=(position, hostname), name=f"fetch-{hostname}")
        threads.append(thread)
        thread.start()
    for thread in threads:
        thread.join()
    return results
