# lc3_sim/core/observe.py
import json
import time
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


class TraceSink:
    """Per-instruction event sink.

    Events go to a JSON-lines file when ``path`` is given, otherwise to
    ``collector`` (any list-like). ``truncate`` empties the file first so a
    new run does not append to an old trace.
    """

    def __init__(self, path: Optional[str] = None, collector: Optional[list] = None,
                 truncate: bool = False):
        self.path = path
        self.collector = collector
        self.count = 0
        if path and truncate:
            Path(path).write_text("", encoding="utf-8")

    def emit(self, event: Dict[str, Any]):
        self.count += 1
        if self.path:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, separators=(",", ":")) + "\n")
        elif self.collector is not None:
            self.collector.append(event)


def read_trace(path: str) -> Iterator[Dict[str, Any]]:
    """Yield the events of a JSON-lines trace, skipping blank lines."""
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield json.loads(line)


def now_ts() -> float:
    return time.time()


def write_metrics(path: str, metrics: Dict[str, Any]):
    Path(path).write_text(json.dumps(metrics, indent=2, sort_keys=True), encoding="utf-8")
