"""Key/CSR generation and PKCS#12 export backends.

Both backends honour the same contract so the pipeline never cares which
one it is talking to:

    generateKeyAndCsr(document, profilePath, keyPath, csrPath, keyPassword)
    exportPkcs12(certPath, keyPath, p12Path, friendlyName, keyPassword, exportPassword)

Every failure surfaces as ExternalToolFailure.
"""
from pathlib import Path
from typing import Optional

from csrbatch.common.errors import ExternalToolFailure
from csrbatch.common.process import runTool
from csrbatch.crypto import pki
from csrbatch.crypto.profile import serializeConfig


# environment variables the child openssl reads its passwords from
KEY_PASS_ENV = "CSRBATCH_KEY_PASS"
EXPORT_PASS_ENV = "CSRBATCH_EXPORT_PASS"


def _keyIsEncrypted(document) -> bool:
    return document.section("req").get("encrypt_key", "no") == "yes"


class OpenSSLToolkit:
    def __init__(self, opensslPath: str = "openssl", timeout: Optional[float] = None):
        self.opensslPath = opensslPath
        self.timeout = timeout

    def writeProfile(self, document, profilePath) -> Path:
        p = Path(profilePath)
        try:
            # always a full rewrite; nothing from the previous record survives
            p.write_text(serializeConfig(document), encoding="utf-8")
        except OSError as e:
            raise ExternalToolFailure(f"cannot write profile {p}: {e}")
        return p

    def generateKeyAndCsr(self, document, profilePath, keyPath, csrPath, keyPassword: Optional[str] = None):
        profile = self.writeProfile(document, profilePath)
        cmd = [
            self.opensslPath, "req", "-new",
            "-config", str(profile),
            "-keyout", str(keyPath),
            "-out", str(csrPath),
        ]
        secrets = {}
        if _keyIsEncrypted(document) and keyPassword:
            cmd += ["-passout", f"env:{KEY_PASS_ENV}"]
            secrets[KEY_PASS_ENV] = keyPassword
        else:
            cmd += ["-nodes"]
        runTool(cmd, self.timeout, what="openssl req", secrets=secrets)

    def exportPkcs12(self, certPath, keyPath, p12Path, friendlyName: str,
                     keyPassword: Optional[str], exportPassword: str):
        cmd = [
            self.opensslPath, "pkcs12", "-export",
            "-in", str(certPath),
            "-inkey", str(keyPath),
            "-out", str(p12Path),
            "-name", friendlyName,
            "-passout", f"env:{EXPORT_PASS_ENV}",
        ]
        secrets = {EXPORT_PASS_ENV: exportPassword}
        if keyPassword:
            cmd += ["-passin", f"env:{KEY_PASS_ENV}"]
            secrets[KEY_PASS_ENV] = keyPassword
        runTool(cmd, self.timeout, what="openssl pkcs12", secrets=secrets)


class NativeToolkit:
    """Same contract, done in-process with the cryptography package."""

    def generateKeyAndCsr(self, document, profilePath, keyPath, csrPath, keyPassword: Optional[str] = None):
        password = keyPassword if _keyIsEncrypted(document) else None
        try:
            key, csr = pki.buildKeyAndCsr(document)
            Path(keyPath).write_bytes(pki.privateKeyPem(key, password))
            Path(csrPath).write_bytes(pki.csrPem(csr))
        except (ValueError, KeyError, OSError) as e:
            raise ExternalToolFailure(f"CSR generation failed: {e}")

    def exportPkcs12(self, certPath, keyPath, p12Path, friendlyName: str,
                     keyPassword: Optional[str], exportPassword: str):
        try:
            cert = pki.loadCert(certPath)
            key = pki.loadPemPrivateKey(keyPath, keyPassword)
            Path(p12Path).write_bytes(pki.pkcs12Bytes(key, cert, friendlyName, exportPassword))
        except (ValueError, TypeError, OSError) as e:
            raise ExternalToolFailure(f"PKCS#12 export failed: {e}")


def makeToolkit(config):
    if config.toolkit == "native":
        return NativeToolkit()
    return OpenSSLToolkit(config.opensslPath, config.toolTimeout)
