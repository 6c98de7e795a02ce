"""Walk an agent memory file through a few days of writes.

Exercises the full pipeline end to end: create, chunked writes, verified
reads of every version, lineage and directory listing. By default it runs
against the in-memory mock substrate and keeps a snapshot of the posts and
the index in a work directory, so repeated runs continue the same history.

Usage:
    python scripts/memory_walkthrough.py [work_dir]
    XFILES_X_BEARER_TOKEN=... python scripts/memory_walkthrough.py --live
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

from xfiles import XFS, MockAdapter, OpenMode, XFilesConfig
from xfiles.exceptions import NotFoundError, XFilesError

logging.basicConfig(level=logging.INFO, format="%(levelname)s  %(message)s")
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

MEMORY_PATH = "agent/memory.txt"
_DEFAULT_WORK_DIR = Path("~/.xfiles/walkthrough").expanduser()


async def _open_engine(work_dir: Path | None) -> tuple[XFS, MockAdapter | None]:
    if work_dir is None:
        return await XFS.connect(), None

    work_dir.mkdir(parents=True, exist_ok=True)
    snapshot = work_dir / "posts.jsonl"
    adapter = await MockAdapter.load(snapshot) if snapshot.exists() else MockAdapter()
    config = XFilesConfig(db_path=str(work_dir / "index.db"), author="walkthrough")
    return await XFS.create(adapter, config), adapter


async def run(work_dir: Path | None) -> None:
    fs, mock = await _open_engine(work_dir)
    results: dict[str, str] = {}

    try:
        # ---- 1. Open or create ----
        try:
            memory = await fs.open(MEMORY_PATH)
            print(f"Opened {MEMORY_PATH} (root={memory.root_id})")
        except NotFoundError:
            memory = await fs.open(MEMORY_PATH, OpenMode.CREATE)
            print(f"Created {MEMORY_PATH} (root={memory.root_id})")
        results["open"] = "PASS"

        # ---- 2. Append today's entry ----
        previous = await memory.read()
        entry = f"{datetime.now(UTC):%Y-%m-%d %H:%M:%S} agent checked in\n".encode()
        commit = await memory.write(previous + entry)
        print(f"Committed {commit.id}: {commit.size} bytes, parent={commit.parent}")
        results["write"] = "PASS"

        # ---- 3. Verify every version ----
        history = await memory.history()
        for version in history:
            content = await memory.read_version(version.id)
            print(f"  {version.id:20s} {version.size:6d} bytes  {content.splitlines()[-1:]}")
        results["history"] = "PASS" if history and history[-1].id == commit.id else "FAIL"

        heads = await fs.heads(MEMORY_PATH)
        if len(heads) > 1:
            print(f"WARNING: {MEMORY_PATH} is forked: {[h.id for h in heads]}")
        results["single_head"] = "PASS" if len(heads) == 1 else "FAIL"

        print(f"Listing: {await fs.list(recursive=True)}")
        print(f"Cache: {fs.cache.stats()}")
        print(f"Rate budget: {fs.budget.stats()}")

        if mock is not None:
            await mock.save(work_dir / "posts.jsonl")

    except XFilesError as exc:
        print(f"FAILED: {exc} {exc.details}")
        results["run"] = "FAIL"
    finally:
        await fs.close()

    # ---- 4. Summary ----
    print()
    print("=" * 50)
    all_pass = True
    for step, status in results.items():
        if status != "PASS":
            all_pass = False
        print(f"  {step:15s}: {status}")
    print("=" * 50)

    if not all_pass:
        sys.exit(1)


def main() -> None:
    if len(sys.argv) > 1 and sys.argv[1] == "--live":
        work_dir = None
    elif len(sys.argv) > 1:
        work_dir = Path(sys.argv[1]).expanduser().resolve()
    else:
        work_dir = _DEFAULT_WORK_DIR

    asyncio.run(run(work_dir))


if __name__ == "__main__":
    main()
