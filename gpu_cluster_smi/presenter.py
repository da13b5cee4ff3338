from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

from .fetch import GpuRecord, HostResult

# --- Thresholds for color coding ---
UTILIZATION_WARN_THRESHOLD = 75
UTILIZATION_CRIT_THRESHOLD = 90

# --- Styles ---
STYLE_CRITICAL = Style(color="red", bold=True)
STYLE_WARNING = Style(color="yellow")
STYLE_OK = Style(color="green")
STYLE_ERROR = Style(color="bright_red", bold=True)
STYLE_HOST = Style(color="cyan", bold=True)
STYLE_GPU_NAME = Style(color="magenta")


def _percent_style(percent: float) -> Style:
    if percent >= UTILIZATION_CRIT_THRESHOLD:
        return STYLE_CRITICAL
    if percent >= UTILIZATION_WARN_THRESHOLD:
        return STYLE_WARNING
    return STYLE_OK


def natural_sort_key_for_host(host_name: str) -> tuple:
    """Helper for natural sorting of hostnames like h1, h2, h10."""
    parts = []
    current_part = ""
    for char_val in host_name:
        char_is_digit = char_val.isdigit()
        prev_char_is_digit = current_part[-1:].isdigit() if current_part else None

        if current_part and (char_is_digit != prev_char_is_digit):
            parts.append(int(current_part) if prev_char_is_digit else current_part)
            current_part = char_val
        else:
            current_part += char_val
    if current_part:
        parts.append(int(current_part) if current_part.isdigit() else current_part)
    # Tag each part so ints and strs never get compared to each other
    return tuple((0, p, "") if isinstance(p, int) else (1, 0, p) for p in parts)


def gpu_record_table(gpu_records: list) -> Table:
    """Nested per-host table: one row per GPU."""
    table = Table(show_edge=True, expand=False)
    table.add_column("Index", justify="center")
    table.add_column("Name", style=STYLE_GPU_NAME, overflow="fold")
    table.add_column("Total mem (GB)", justify="right")
    table.add_column("Used mem (GB)", justify="right")
    table.add_column("Util (%)", justify="right")

    for gpu in gpu_records:
        table.add_row(*gpu_record_row(gpu))
    return table


def gpu_record_row(gpu: GpuRecord) -> list:
    mem_percent = gpu.memory_usage * 100
    util_percent = gpu.utilization * 100
    return [
        str(gpu.index),
        gpu.name,
        f"{gpu.total_memory / 1000:.2f}",
        Text(f"{gpu.used_memory / 1000:.2f} ({mem_percent:.1f}%)", style=_percent_style(mem_percent)),
        Text(f"{util_percent:.2f}", style=_percent_style(util_percent)),
    ]


def host_results_table(results: list, sort_hosts: bool = False) -> Table:
    """Two-column table: hostname and either a GPU table or the host's error."""
    table = Table(title="GPU usage", show_lines=True)
    table.add_column("Hostname", style=STYLE_HOST)
    table.add_column("GPUs")

    if sort_hosts:
        results = sorted(results, key=lambda r: natural_sort_key_for_host(r.hostname))

    for result in results:
        table.add_row(result.hostname, host_cell(result))
    return table


def host_cell(result: HostResult):
    if not result.ok:
        return Text(str(result.error), style=STYLE_ERROR)
    if not result.record.gpu_records:
        return Text("No GPUs", style=STYLE_WARNING)
    return gpu_record_table(result.record.gpu_records)


def render(results: list, console: Console, sort_hosts: bool = False) -> None:
    console.print(host_results_table(results, sort_hosts=sort_hosts))
