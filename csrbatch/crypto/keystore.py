"""Java keystore merges through keytool."""
import subprocess
from pathlib import Path
from typing import Optional

from csrbatch.common.errors import ExternalToolFailure
from csrbatch.common.process import runTool, toolEnv

# keytool's "-xxxpass:env NAME" form reads each password from the child environment
STORE_PASS_ENV = "CSRBATCH_STORE_PASS"
SRC_STORE_PASS_ENV = "CSRBATCH_SRC_STORE_PASS"
SRC_KEY_PASS_ENV = "CSRBATCH_SRC_KEY_PASS"
DEST_STORE_PASS_ENV = "CSRBATCH_DEST_STORE_PASS"
DEST_KEY_PASS_ENV = "CSRBATCH_DEST_KEY_PASS"


class KeyTool:
    def __init__(self, keytoolPath: str = "keytool", timeout: Optional[float] = None):
        self.keytoolPath = keytoolPath
        self.timeout = timeout

    def containsAlias(self, keystorePath, alias: str, storePassword: str) -> bool:
        if not Path(keystorePath).exists():
            return False
        cmd = [
            self.keytoolPath, "-list",
            "-keystore", str(keystorePath),
            "-storepass:env", STORE_PASS_ENV,
            "-alias", alias,
        ]
        try:
            subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                           text=True, timeout=self.timeout, check=True,
                           env=toolEnv({STORE_PASS_ENV: storePassword}))
        except subprocess.CalledProcessError:
            # keytool exits non-zero when the alias is not in the store
            return False
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ExternalToolFailure(f"keytool -list failed: {e}")
        return True

    def importPkcs12(self, p12Path, alias: str, srcStorePassword: str, srcKeyPassword: str,
                     keystorePath, destStorePassword: str, destKeyPassword: str):
        cmd = [
            self.keytoolPath, "-importkeystore",
            "-srckeystore", str(p12Path),
            "-srcstoretype", "PKCS12",
            "-srcstorepass:env", SRC_STORE_PASS_ENV,
            "-srckeypass:env", SRC_KEY_PASS_ENV,
            "-srcalias", alias,
            "-destkeystore", str(keystorePath),
            "-deststoretype", "JKS",
            "-deststorepass:env", DEST_STORE_PASS_ENV,
            "-destkeypass:env", DEST_KEY_PASS_ENV,
            "-destalias", alias,
            "-noprompt",
        ]
        runTool(cmd, self.timeout, what="keytool -importkeystore", secrets={
            SRC_STORE_PASS_ENV: srcStorePassword,
            SRC_KEY_PASS_ENV: srcKeyPassword,
            DEST_STORE_PASS_ENV: destStorePassword,
            DEST_KEY_PASS_ENV: destKeyPassword,
        })
