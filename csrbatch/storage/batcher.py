"""Group CSRs into CA-upload sized batch directories and zip each one.

Membership is purely positional: the n-th CSR handed in goes to the batch
covering n. A new run starts after the highest slot of any existing batch
directory, so a batch that was already zipped is never added to.
"""
import os
import re
from pathlib import Path
from typing import List, NamedTuple, Sequence

from csrbatch.common.errors import CsrBatchError
from csrbatch.common.naming import csrFileName
from csrbatch.common.records import RecordState
from csrbatch.common.settings import DEFAULT_BATCH_SIZE
from csrbatch.storage.fsutil import ensureDir

BATCH_DIR_RE = re.compile(r"^Certs-(\d+)-(\d+)$")


class Batch(NamedTuple):
    first: int
    last: int
    capacity: int = DEFAULT_BATCH_SIZE

    @property
    def name(self) -> str:
        # named for the slots it can hold, not how many it got
        return f"Certs-{self.first}-{self.first + self.capacity - 1}"

    @property
    def size(self) -> int:
        return self.last - self.first + 1


def initializeBatches(count: int, batchSize: int = DEFAULT_BATCH_SIZE, start: int = 1) -> List[Batch]:
    if batchSize < 1:
        raise ValueError("batch size must be at least 1")
    batches = []
    first = start
    end = start + count - 1
    while first <= end:
        last = min(first + batchSize - 1, end)
        batches.append(Batch(first, last, batchSize))
        first = last + 1
    return batches


def existingBatchDirs(csrDir) -> List[Path]:
    found = []
    root = Path(csrDir)
    if not root.is_dir():
        return []
    for d in root.iterdir():
        m = BATCH_DIR_RE.match(d.name)
        if m and d.is_dir():
            found.append((int(m.group(1)), d))
    return [d for _, d in sorted(found)]


def nextBatchIndex(csrDir) -> int:
    last = 0
    for d in existingBatchDirs(csrDir):
        last = max(last, int(BATCH_DIR_RE.match(d.name).group(2)))
    return last + 1


def looseRequests(csrDir, records) -> List[Path]:
    """CSRs sitting directly under csrDir, in roster order."""
    root = Path(csrDir)
    return [root / csrFileName(r) for r in records if (root / csrFileName(r)).is_file()]


def batchRequests(csrFiles: Sequence[Path], csrDir, batchSize: int = DEFAULT_BATCH_SIZE, report=None) -> List[Path]:
    """Move csrFiles into Certs-<first>-<last> directories under csrDir.

    Returns the batch directories that received files.
    """
    files = [Path(f) for f in csrFiles]
    batches = initializeBatches(len(files), batchSize, start=nextBatchIndex(csrDir))
    dirs = []
    offset = 0
    for batch in batches:
        target = ensureDir(Path(csrDir) / batch.name)
        dirs.append(target)
        for f in files[offset:offset + batch.size]:
            alias = f.stem
            try:
                os.replace(f, target / f.name)
            except OSError as e:
                print(f"[batch] could not move {f.name} into {batch.name}: {e}")
                if report is not None:
                    report.record(alias, RecordState.FAILED, f"move failed: {e}")
                continue
            if report is not None:
                report.record(alias, RecordState.BATCHED)
        offset += batch.size
        print(f"[batch] {batch.name}: {batch.size} request(s)")
    return dirs


def archiveBatches(csrDir, zipDir, archiver, report=None) -> List[Path]:
    """Zip every batch directory to zipDir/<dir name>.zip."""
    ensureDir(zipDir)
    archives = []
    for d in existingBatchDirs(csrDir):
        out = Path(zipDir) / f"{d.name}.zip"
        try:
            archiver.pack(d, out)
        except CsrBatchError as e:
            print(f"[batch] archiving {d.name} failed: {e}")
            if report is not None:
                report.record(d.name, RecordState.FAILED, str(e))
            continue
        archives.append(out)
        if report is not None:
            report.record(d.name, RecordState.BATCHED)
        print(f"[batch] wrote {out.name}")
    return archives
