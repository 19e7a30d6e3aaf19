"""Key pair + CSR generation for every roster record."""
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List

from csrbatch.common.errors import CsrBatchError, MissingArtifact
from csrbatch.common.naming import csrFileName, keyFileName
from csrbatch.common.records import RecordState
from csrbatch.common.settings import DEFAULT_PASSWORD
from csrbatch.crypto.profile import emitConfig
from csrbatch.storage.batcher import existingBatchDirs
from csrbatch.storage.fsutil import ensureDir


def _alreadyRequested(record, config) -> bool:
    if not (config.keyDir / keyFileName(record)).is_file():
        return False
    name = csrFileName(record)
    if (config.csrDir / name).is_file():
        return True
    return any((d / name).is_file() for d in existingBatchDirs(config.csrDir))


def generateRequest(record, config, toolkit, report=None, profilePath=None) -> RecordState:
    keyPath = config.keyDir / keyFileName(record)
    csrPath = config.csrDir / csrFileName(record)

    if not config.force and _alreadyRequested(record, config):
        print(f"[csr] {record.alias}: key and CSR already exist, skipping")
        if report is not None:
            report.record(record.alias, RecordState.SKIPPED, "already generated")
        return RecordState.SKIPPED

    profile = Path(profilePath or config.profilePath)
    for d in (keyPath.parent, csrPath.parent, profile.parent):
        ensureDir(d)

    password = config.keyPasswordFor(record)
    encrypt = password != DEFAULT_PASSWORD
    document = emitConfig(record, encryptKey=encrypt)

    try:
        toolkit.generateKeyAndCsr(
            document,
            profile,
            keyPath,
            csrPath,
            password if encrypt else None,
        )
        if not keyPath.is_file() or not csrPath.is_file():
            raise MissingArtifact(f"toolkit reported success but {keyPath.name}/{csrPath.name} missing")
    except CsrBatchError as e:
        print(f"[csr] {record.alias}: FAILED: {e}")
        if report is not None:
            report.record(record.alias, RecordState.FAILED, str(e))
        return RecordState.FAILED

    print(f"[csr] {record.alias}: {csrPath.name}")
    if report is not None:
        report.record(record.alias, RecordState.KEY_CSR_GENERATED)
    return RecordState.KEY_CSR_GENERATED


def _generateIsolated(record, config, toolkit, report):
    # one profile file per record so parallel workers never share one
    profile = config.rootPath / f"openssl.{record.alias}.cfg"
    try:
        return generateRequest(record, config, toolkit, report, profilePath=profile)
    finally:
        profile.unlink(missing_ok=True)


def generateRequests(records, config, toolkit, report=None) -> List[Path]:
    """Generate keys and CSRs in roster order.

    Returns the freshly written CSR paths, roster order preserved.
    """
    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            states = list(pool.map(lambda r: _generateIsolated(r, config, toolkit, report), records))
    else:
        states = [generateRequest(r, config, toolkit, report) for r in records]

    return [
        config.csrDir / csrFileName(r)
        for r, s in zip(records, states)
        if s == RecordState.KEY_CSR_GENERATED
    ]
