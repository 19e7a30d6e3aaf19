"""PKCS#12 bundles per record, then one keystore holding all of them."""
from concurrent.futures import ThreadPoolExecutor
from typing import List

from csrbatch.common.errors import CsrBatchError, MissingArtifact
from csrbatch.common.naming import certFileName, keyFileName, p12FileName
from csrbatch.common.records import RecordState
from csrbatch.common.settings import DEFAULT_PASSWORD
from csrbatch.storage.fsutil import ensureDir


def friendlyName(record) -> str:
    return record.alias


def _fail(report, record, tag, reason) -> RecordState:
    print(f"[{tag}] {record.alias}: FAILED: {reason}")
    if report is not None:
        report.record(record.alias, RecordState.FAILED, str(reason))
    return RecordState.FAILED


def _skip(report, record, tag, reason) -> RecordState:
    print(f"[{tag}] WARNING {record.alias}: {reason}, skipping (use --force to redo)")
    if report is not None:
        report.record(record.alias, RecordState.SKIPPED, reason)
    return RecordState.SKIPPED


def createBundle(record, config, toolkit, report=None) -> RecordState:
    certPath = config.cerDir / certFileName(record)
    keyPath = config.keyDir / keyFileName(record)
    p12Path = config.p12Dir / p12FileName(record)

    if p12Path.exists() and not config.force:
        return _skip(report, record, "p12", f"{p12Path.name} already exists")

    missing = [p.name for p in (certPath, keyPath) if not p.is_file()]
    if missing:
        return _fail(report, record, "p12", MissingArtifact(f"missing {', '.join(missing)}"))

    keyPassword = config.keyPasswordFor(record)
    try:
        toolkit.exportPkcs12(
            certPath,
            keyPath,
            p12Path,
            friendlyName(record),
            keyPassword if keyPassword != DEFAULT_PASSWORD else None,
            config.p12Password.get_secret_value(),
        )
    except CsrBatchError as e:
        return _fail(report, record, "p12", e)

    print(f"[p12] {record.alias}: {p12Path.name}")
    if report is not None:
        report.record(record.alias, RecordState.BUNDLED)
    return RecordState.BUNDLED


def createBundles(records, config, toolkit, report=None) -> List[RecordState]:
    ensureDir(config.p12Dir)
    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            return list(pool.map(lambda r: createBundle(r, config, toolkit, report), records))
    return [createBundle(r, config, toolkit, report) for r in records]


def importBundles(records, config, keytool, report=None) -> List[RecordState]:
    """Merge every alias.p12 into the keystore, one at a time in roster order.

    keytool cannot take concurrent writers on one store, so this never fans out.
    """
    ensureDir(config.keystorePath.parent)
    p12Password = config.p12Password.get_secret_value()
    storePassword = config.keystorePassword.get_secret_value()
    imported = set()
    states = []

    for record in records:
        alias = friendlyName(record)
        p12Path = config.p12Dir / p12FileName(record)
        if not p12Path.is_file():
            states.append(_fail(report, record, "keystore", MissingArtifact(f"missing {p12Path.name}")))
            continue

        try:
            if not config.force:
                present = alias in imported or keytool.containsAlias(
                    config.keystorePath, alias, storePassword)
                if present:
                    states.append(_skip(report, record, "keystore",
                                        f"alias {alias} already in {config.keystorePath.name}"))
                    continue
            keytool.importPkcs12(
                p12Path, alias, p12Password, p12Password,
                config.keystorePath, storePassword, storePassword,
            )
        except CsrBatchError as e:
            states.append(_fail(report, record, "keystore", e))
            continue

        imported.add(alias)
        print(f"[keystore] {alias} imported")
        if report is not None:
            report.record(record.alias, RecordState.KEYSTORED)
        states.append(RecordState.KEYSTORED)
    return states
