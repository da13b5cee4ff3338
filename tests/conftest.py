"""Test configuration file."""

import subprocess
import sys
from pathlib import Path

import pytest

# Add the package to the Python path for testing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


SAMPLE_CSV = (
    b"index, name, memory.total [MiB], memory.used [MiB], utilization.gpu [%]\n"
    b"0, TITAN X (Pascal), 12189 MiB, 1 MiB, 0 %\n"
    b"1, TITAN X (Pascal), 12189 MiB, 10500 MiB, 100 %\n"
)


@pytest.fixture
def sample_csv():
    """nvidia-smi --format=csv output for a host with two GPUs."""
    return SAMPLE_CSV


def completed(returncode=0, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(args=["ssh"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_ssh(sample_csv):
    """Fake subprocess.run: hosts starting with 'bad' fail, others return sample_csv."""

    def run(cmd, **kwargs):
        target = cmd[cmd.index("nvidia-smi") - 1]
        host = target.split("@")[-1]
        if host.startswith("bad"):
            return completed(255, stderr=f"ssh: Could not resolve hostname {host}\n".encode())
        return completed(0, stdout=sample_csv)

    return run
