"""Take the CA's returned archives and rename certificates back to roster aliases."""
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List

from csrbatch.common.errors import CsrBatchError, MissingArtifact
from csrbatch.common.naming import certFileName, issuedCertFileName
from csrbatch.common.records import RecordState
from csrbatch.storage.fsutil import ensureDir


def unpackArchives(downloadDir, cerDir, archiver, report=None) -> List[Path]:
    """Unpack every *.zip in downloadDir flat into cerDir.

    The CA's archive split has nothing to do with our upload batches, so all
    of them land in the same intake directory.
    """
    src = Path(downloadDir)
    if not src.is_dir():
        raise MissingArtifact(f"download directory {src} does not exist")
    ensureDir(cerDir)

    unpacked = []
    for archive in sorted(src.glob("*.zip")):
        try:
            archiver.unpack(archive, cerDir)
        except CsrBatchError as e:
            print(f"[ingest] {archive.name}: {e}")
            if report is not None:
                report.record(archive.name, RecordState.FAILED, str(e))
            continue
        unpacked.append(archive)
        if report is not None:
            report.record(archive.name, RecordState.CERT_RECEIVED)
        print(f"[ingest] unpacked {archive.name}")

    if not unpacked:
        print(f"[ingest] no archives unpacked from {src}")
    return unpacked


def renameCertificate(record, cerDir, report=None) -> RecordState:
    cerDir = Path(cerDir)
    source = cerDir / issuedCertFileName(record)
    target = cerDir / certFileName(record)

    if not source.is_file():
        if target.is_file():
            reason = f"{source.name} absent, {target.name} already present"
            print(f"[ingest] {record.alias}: {reason}")
            state = RecordState.SKIPPED
        else:
            reason = f"missing artifact {source.name}"
            print(f"[ingest] {record.alias}: {reason}")
            state = RecordState.FAILED
        if report is not None:
            report.record(record.alias, state, reason)
        return state

    try:
        source.replace(target)
    except OSError as e:
        print(f"[ingest] {record.alias}: rename failed: {e}")
        if report is not None:
            report.record(record.alias, RecordState.FAILED, f"rename failed: {e}")
        return RecordState.FAILED

    if report is not None:
        report.record(record.alias, RecordState.RENAMED)
    return RecordState.RENAMED


def renameCertificates(records, cerDir, report=None, workers: int = 1) -> List[RecordState]:
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            states = list(pool.map(lambda r: renameCertificate(r, cerDir, report), records))
    else:
        states = [renameCertificate(r, cerDir, report) for r in records]
    renamed = sum(1 for s in states if s == RecordState.RENAMED)
    print(f"[ingest] renamed {renamed} of {len(states)} certificate(s)")
    return states
