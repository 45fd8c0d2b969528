"""Host and process telemetry for ``GET /api/server-stats``."""

import logging
import os
import platform
import socket
import time
from typing import Any, Dict

import psutil
from fastapi import APIRouter

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/server-stats", tags=["Server"])

_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_bytes(num: float) -> str:
    """Human-readable size with up to two decimals: ``1536 -> "1.5 KB"``."""
    if not num or num <= 0:
        return "0 Bytes"
    i = 0
    while num >= 1024 ** (i + 1) and i < len(_UNITS) - 1:
        i += 1
    value = round(num / (1024**i), 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[i]}"


def format_uptime(seconds: float) -> str:
    s = int(max(seconds, 0))
    days, s = divmod(s, 86400)
    hours, s = divmod(s, 3600)
    minutes, secs = divmod(s, 60)
    return f"{days}d {hours}h {minutes}m {secs}s"


def _cpu_model() -> str:
    model = platform.processor()
    if model:
        return model
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as fh:
            for line in fh:
                if line.lower().startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return platform.machine() or "unknown"


def collect_stats() -> Dict[str, Any]:
    proc = psutil.Process(os.getpid())
    mem = proc.memory_info()
    freq = psutil.cpu_freq()
    now = time.time()
    vm = psutil.virtual_memory()
    return {
        "memory": {
            "rss": format_bytes(mem.rss),
            "vms": format_bytes(mem.vms),
            "systemTotal": format_bytes(vm.total),
            "systemAvailable": format_bytes(vm.available),
        },
        "cpu": {
            "model": _cpu_model(),
            "cores": psutil.cpu_count(logical=True) or 0,
            "speed": f"{int(freq.current)} MHz" if freq else "unknown",
        },
        "system": {
            "platform": platform.system().lower(),
            "arch": platform.machine(),
            "uptime": format_uptime(now - psutil.boot_time()),
            "hostname": socket.gethostname(),
        },
        "process": {
            "pid": proc.pid,
            "version": platform.python_version(),
            "uptime": format_uptime(now - proc.create_time()),
        },
    }


@router.get("")
async def server_stats():
    """Memory, CPU, host and process details of the running gateway."""
    stats = collect_stats()
    log.debug("route.server_stats rss=%s", stats["memory"]["rss"])
    return stats
