#!/usr/bin/env python3
"""Batch CSR generation and certificate/keystore assembly for a roster.

Typical round trip:

    csrbatch --root-path work --csv-file roster.csv --create-csr --zip
    (upload output/Zips/*.zip to the CA portal, download the results)
    csrbatch --root-path work --csv-file roster.csv --unzip --npe-download-dir dl --rename-files
    csrbatch --root-path work --csv-file roster.csv --create-p12 --create-keystore --p12-password --keystore-password
"""
import argparse
import filecmp
import getpass
import os
import shutil
import sys
from pathlib import Path

from csrbatch.bundler import createBundles, importBundles
from csrbatch.common.errors import CsrBatchError, MissingArtifact
from csrbatch.common.records import loadRoster
from csrbatch.common.settings import loadConfig
from csrbatch.crypto.keystore import KeyTool
from csrbatch.crypto.toolkit import makeToolkit
from csrbatch.generator import generateRequests
from csrbatch.storage.archiver import makeArchiver
from csrbatch.storage.batcher import archiveBatches, batchRequests, looseRequests
from csrbatch.storage.fsutil import ensureLayout
from csrbatch.storage.ingest import renameCertificates, unpackArchives
from csrbatch.summary import RunSummary

ROSTER_MODES = ("create_csr", "zip", "rename_files", "create_p12", "create_keystore")


def buildParser():
    parser = argparse.ArgumentParser(
        prog="csrbatch",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--root-path", help="working directory root (env CSRBATCH_ROOT)")
    parser.add_argument("--csv-file", help="roster: lname,fname,mi,gen,san,dodid,password,alias")
    parser.add_argument("--overwrite-csv", action="store_true",
                        help="re-copy the roster into the root path even if a copy exists")

    modes = parser.add_argument_group("modes (run in pipeline order)")
    modes.add_argument("--create-csr", action="store_true", help="generate keys + CSRs and batch them")
    modes.add_argument("--zip", action="store_true", help="batch loose CSRs and zip every batch")
    modes.add_argument("--unzip", action="store_true", help="unpack CA archives into output/CERs")
    modes.add_argument("--npe-download-dir", help="directory holding the CA's zip files (for --unzip)")
    modes.add_argument("--rename-files", action="store_true", help="rename <CN>.cer to <alias>.cer")
    modes.add_argument("--create-p12", action="store_true", help="bundle cert + key into <alias>.p12")
    modes.add_argument("--create-keystore", action="store_true", help="import every .p12 into keystore.jks")

    pw = parser.add_argument_group("passwords (prompted; 'default' when the flag is absent)")
    pw.add_argument("--password", action="store_true", help="prompt for the private key password")
    pw.add_argument("--p12-password", action="store_true", help="prompt for the PKCS#12 export password")
    pw.add_argument("--keystore-password", action="store_true", help="prompt for the keystore password")

    tools = parser.add_argument_group("tools and tuning")
    tools.add_argument("--toolkit", choices=("openssl", "native"), help="crypto backend (env CSRBATCH_TOOLKIT)")
    tools.add_argument("--openssl", help="openssl executable (env CSRBATCH_OPENSSL)")
    tools.add_argument("--keytool", help="keytool executable (env CSRBATCH_KEYTOOL)")
    tools.add_argument("--7zip", dest="seven_zip", help="7z executable; built-in zip when unset (env CSRBATCH_7ZIP)")
    tools.add_argument("--batch-size", type=int, help="CSRs per upload batch (default 100)")
    tools.add_argument("--timeout", type=float, help="seconds per external tool call (default 30)")
    tools.add_argument("--workers", type=int, help="parallel workers for per-record steps (default 1)")
    tools.add_argument("--force", action="store_true", help="redo records whose artifacts already exist")
    return parser


def promptPassword(label: str) -> str:
    while True:
        first = getpass.getpass(f"{label}: ")
        second = getpass.getpass(f"Confirm {label.lower()}: ")
        if first and first == second:
            return first
        print("[!] empty or mismatched, try again")


def collectPasswords(args):
    passwords = {}
    if args.password:
        passwords["keyPassword"] = promptPassword("Private key password")
    if args.p12_password:
        passwords["p12Password"] = promptPassword("PKCS#12 export password")
    if args.keystore_password:
        passwords["keystorePassword"] = promptPassword("Keystore password")
    return passwords


def rosterSource(config, overwrite: bool = False) -> Path:
    """The roster to read: the working copy under the root path unless it is
    missing or --overwrite-csv asks for a fresh copy."""
    src = Path(config.csvFile)
    target = config.rootPath / src.name
    if target.is_file() and not overwrite:
        if src.is_file() and not filecmp.cmp(src, target, shallow=False):
            print(f"[!] {src} differs from the working copy {target}; using the working copy "
                  "(pass --overwrite-csv to replace it)")
        return target
    if not src.is_file():
        raise MissingArtifact(f"roster {src} not found")
    return src


def stageRoster(config, source: Path) -> Path:
    target = config.rootPath / source.name
    if target.exists() and source.resolve() == target.resolve():
        return target
    shutil.copyfile(source, target)
    print(f"[+] roster copied to {target}")
    return target


def run(args) -> int:
    if not any(getattr(args, m) for m in ROSTER_MODES + ("unzip",)):
        print("[FAIL] nothing to do: pick at least one mode (see --help)")
        return 2

    try:
        config = loadConfig(args, collectPasswords(args))
    except ValueError as e:
        print(f"[FAIL] {e}")
        return 2

    needsRoster = any(getattr(args, m) for m in ROSTER_MODES)
    if needsRoster and config.csvFile is None:
        print("[FAIL] --csv-file is required for the selected mode(s)")
        return 2
    downloadDir = args.npe_download_dir or os.getenv("CSRBATCH_DOWNLOAD_DIR")
    if args.unzip and not downloadDir:
        print("[FAIL] --unzip needs --npe-download-dir")
        return 2

    try:
        # roster problems abort before anything is written
        records = []
        if needsRoster:
            source = rosterSource(config, args.overwrite_csv)
            records = loadRoster(source)
        ensureLayout(config)
        if needsRoster:
            stageRoster(config, source)
    except (CsrBatchError, OSError, ValueError) as e:
        print(f"[FAIL] {e}")
        return 2
    if needsRoster:
        print(f"[+] {len(records)} record(s) loaded")

    summary = RunSummary()
    archiver = makeArchiver(config)
    try:
        if args.create_csr:
            generateRequests(records, config, makeToolkit(config), summary.stage("generate"))
            batchRequests(looseRequests(config.csrDir, records), config.csrDir,
                          config.batchSize, summary.stage("batch"))
        if args.zip:
            if not args.create_csr:
                batchRequests(looseRequests(config.csrDir, records), config.csrDir,
                              config.batchSize, summary.stage("batch"))
            archiveBatches(config.csrDir, config.zipDir, archiver, summary.stage("archive"))
        if args.unzip:
            unpackArchives(downloadDir, config.cerDir, archiver, summary.stage("unzip"))
        if args.rename_files:
            renameCertificates(records, config.cerDir, summary.stage("rename"), config.workers)
        if args.create_p12:
            createBundles(records, config, makeToolkit(config), summary.stage("p12"))
        if args.create_keystore:
            keytool = KeyTool(config.keytoolPath, config.toolTimeout)
            importBundles(records, config, keytool, summary.stage("keystore"))
    except CsrBatchError as e:
        # stage-level setup failure (directory creation, download dir)
        print(f"[FAIL] {e}")
        summary.show()
        return 2

    summary.show()
    return summary.exitCode()


def main(argv=None):
    args = buildParser().parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
