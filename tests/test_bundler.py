import datetime
import subprocess

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from conftest import FakeKeyTool, FakeToolkit, makeRecord
from csrbatch.bundler import createBundles, importBundles
from csrbatch.common.records import RecordState
from csrbatch.crypto.keystore import KeyTool
from csrbatch.crypto.profile import emitConfig
from csrbatch.crypto.toolkit import NativeToolkit
from csrbatch.storage.fsutil import ensureLayout
from csrbatch.summary import StageReport


def _stage(config, records, certs=True, keys=True):
    ensureLayout(config)
    for r in records:
        if certs:
            (config.cerDir / f"{r.alias}.cer").write_text("cert")
        if keys:
            (config.keyDir / f"{r.alias}.key").write_text("key")


def test_bundles_with_default_passwords(config, records):
    _stage(config, records)
    toolkit = FakeToolkit()
    report = StageReport("p12")

    states = createBundles(records, config, toolkit, report)

    assert states == [RecordState.BUNDLED] * 3
    assert (config.p12Dir / "A2.p12").is_file()
    assert toolkit.exports[0] == ("A1", None, "default")


def test_roster_key_password_unlocks_key(config):
    rec = makeRecord(password="s3cret")
    _stage(config, [rec])
    toolkit = FakeToolkit()
    createBundles([rec], config, toolkit)
    assert toolkit.exports == [("A1", "s3cret", "default")]


def test_missing_cert_is_a_per_record_failure(config, records):
    _stage(config, records)
    (config.cerDir / "A2.cer").unlink()
    report = StageReport("p12")

    states = createBundles(records, config, FakeToolkit(), report)

    assert states == [RecordState.BUNDLED, RecordState.FAILED, RecordState.BUNDLED]
    assert "A2.cer" in report.outcomes["A2"][1]


def test_existing_bundle_is_skipped_with_warning(config, records, capsys):
    _stage(config, records)
    (config.p12Dir / "A1.p12").write_text("old")
    toolkit = FakeToolkit()

    states = createBundles(records, config, toolkit)

    assert states[0] == RecordState.SKIPPED
    assert (config.p12Dir / "A1.p12").read_text() == "old"
    assert "WARNING A1" in capsys.readouterr().out

    forced = config.model_copy(update={"force": True})
    createBundles(records[:1], forced, toolkit)
    assert (config.p12Dir / "A1.p12").read_text() == "P12 A1"


def test_parallel_bundles(config, records):
    _stage(config, records)
    parallel = config.model_copy(update={"workers": 3})
    states = createBundles(records, parallel, FakeToolkit(failFor={"A3"}))
    assert states == [RecordState.BUNDLED, RecordState.BUNDLED, RecordState.FAILED]


def test_native_pkcs12_export(tmp_path):
    rec = makeRecord()
    keyPath, csrPath, certPath = tmp_path / "A1.key", tmp_path / "A1.csr", tmp_path / "A1.cer"
    toolkit = NativeToolkit()
    toolkit.generateKeyAndCsr(emitConfig(rec), tmp_path / "p.cfg", keyPath, csrPath)

    key = serialization.load_pem_private_key(keyPath.read_bytes(), password=None)
    csr = x509.load_pem_x509_csr(csrPath.read_bytes())
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(csr.subject)
        .public_key(csr.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(private_key=key, algorithm=hashes.SHA256())
    )
    # CA portals commonly return DER
    certPath.write_bytes(cert.public_bytes(serialization.Encoding.DER))

    toolkit.exportPkcs12(certPath, keyPath, tmp_path / "A1.p12", "A1", None, "default")

    bundle = pkcs12.load_pkcs12((tmp_path / "A1.p12").read_bytes(), b"default")
    assert bundle.cert.friendly_name == b"A1"
    assert bundle.cert.certificate == cert


def test_keystore_import_in_roster_order(config, records):
    _stage(config, records)
    createBundles(records, config, FakeToolkit())
    keytool = FakeKeyTool()
    report = StageReport("keystore")

    states = importBundles(records, config, keytool, report)

    assert states == [RecordState.KEYSTORED] * 3
    assert [i[0] for i in keytool.imports] == ["A1", "A2", "A3"]
    assert keytool.imports[0][1:] == ("default", "default")
    assert config.keystorePath.is_file()


def test_keystore_skips_present_aliases_unless_forced(config, records):
    _stage(config, records)
    createBundles(records, config, FakeToolkit())
    keytool = FakeKeyTool(present={"A2"})
    report = StageReport("keystore")

    states = importBundles(records, config, keytool, report)
    assert states == [RecordState.KEYSTORED, RecordState.SKIPPED, RecordState.KEYSTORED]

    again = importBundles(records, config, keytool)
    assert again == [RecordState.SKIPPED] * 3
    assert len(keytool.imports) == 2

    forced = config.model_copy(update={"force": True})
    importBundles(records, forced, keytool)
    assert len(keytool.imports) == 5


def test_keystore_missing_bundle(config, records):
    _stage(config, records)
    createBundles(records[:2], config, FakeToolkit())
    report = StageReport("keystore")
    states = importBundles(records, config, FakeKeyTool(), report)
    assert states[2] == RecordState.FAILED
    assert report.failed == ["A3"]


def test_keytool_command_line(tmp_path, monkeypatch):
    calls = []

    def fake(cmd, **kwargs):
        calls.append((cmd, kwargs["env"]))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", fake)
    KeyTool("/usr/bin/keytool").importPkcs12(tmp_path / "A1.p12", "A1", "p12pw", "p12pw",
                                            tmp_path / "keystore.jks", "kspw", "kspw")

    cmd, env = calls[0]
    assert cmd[:2] == ["/usr/bin/keytool", "-importkeystore"]
    assert cmd[cmd.index("-srcstoretype") + 1] == "PKCS12"
    assert cmd[cmd.index("-srcalias") + 1] == "A1"
    assert cmd[cmd.index("-destalias") + 1] == "A1"
    assert cmd[cmd.index("-deststorepass:env") + 1] == "CSRBATCH_DEST_STORE_PASS"
    assert env["CSRBATCH_DEST_STORE_PASS"] == "kspw"
    assert env["CSRBATCH_SRC_STORE_PASS"] == "p12pw"
    assert "kspw" not in cmd and "p12pw" not in cmd
    assert "-noprompt" in cmd


def test_keytool_contains_alias(tmp_path, monkeypatch):
    store = tmp_path / "keystore.jks"
    tool = KeyTool()
    assert tool.containsAlias(store, "A1", "pw") is False

    store.write_bytes(b"x")

    def missing(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(subprocess, "run", missing)
    assert tool.containsAlias(store, "A1", "pw") is False

    monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: subprocess.CompletedProcess(cmd, 0))
    assert tool.containsAlias(store, "A1", "pw") is True
