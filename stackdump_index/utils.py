# stackdump_index/utils.py
from __future__ import annotations
import json, threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from tqdm import tqdm

# (records_read, hits, percent_done 0..100, description)
ProgressCallback = Callable[[int, int, float, str], None]

def log(msg: str) -> None:
    ts = datetime.now().strftime('%H:%M:%S')
    print(f"[{ts}] {msg}")

def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)

def newer_than(out: Path, *ins: Path) -> bool:
    if not out.exists():
        return False
    out_m = out.stat().st_mtime
    return all(out_m >= i.stat().st_mtime for i in ins if i and i.exists())

# ---- progress ----
class TqdmProgress:
    """ProgressCallback rendering a percent bar; use as a context manager."""

    def __init__(self, desc: str) -> None:
        self.bar = tqdm(total=100, desc=desc, unit="%",
                        bar_format="{desc}: {percentage:3.0f}%|{bar}| {postfix}")

    def __call__(self, lines: int, hits: int, percent: float, description: str = "") -> None:
        self.bar.n = min(100.0, round(percent, 1))
        self.bar.set_postfix_str(f"read={lines:,} hits={hits:,}", refresh=False)
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

# ---- bounded fan-out ----
class BoundedPool:
    """Thread pool that blocks submit() while `limit` tasks are in flight."""

    def __init__(self, limit: int, workers: Optional[int] = None) -> None:
        self.limit = max(1, int(limit))
        self._permits = threading.Semaphore(self.limit)
        self._ex = ThreadPoolExecutor(max_workers=workers or self.limit)
        self._pending: List[Future] = []

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        self._permits.acquire()
        try:
            fut = self._ex.submit(fn, *args)
        except BaseException:
            self._permits.release()
            raise
        fut.add_done_callback(lambda _f: self._permits.release())
        self._pending.append(fut)
        return fut

    def join(self) -> List[Any]:
        """Wait for everything submitted so far and return the results in submit order."""
        pending, self._pending = self._pending, []
        wait(pending)
        return [f.result() for f in pending]

    def close(self) -> None:
        self._ex.shutdown(wait=True)

    def __enter__(self) -> "BoundedPool":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

# ---- id hand-off files (JSON arrays of ints) ----
def read_ids(path: Path) -> List[int]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    # older Questions.json files wrap the list: {"postIds": [...]}
    if isinstance(data, dict):
        data = data.get("postIds", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of ids")
    return [int(x) for x in data]

def write_ids(path: Path, ids: Iterable[int]) -> int:
    out = [int(x) for x in ids]
    ensure_dir(Path(path).parent)
    Path(path).write_text(json.dumps(out), encoding="utf-8")
    return len(out)
