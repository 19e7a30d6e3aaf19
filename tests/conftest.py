import csv
from pathlib import Path

import pytest

from csrbatch.common.errors import ExternalToolFailure
from csrbatch.common.records import IdentityRecord
from csrbatch.common.settings import PipelineConfig
from csrbatch.crypto.profile import serializeConfig

HEADER = ["lname", "fname", "mi", "gen", "san", "dodid", "password", "alias"]


def makeRecord(alias="A1", gen="", dodId="1234567890", first="John", last="Doe", mi="Q",
               email=None, password=None):
    return IdentityRecord(
        lastName=last,
        firstName=first,
        middleInitial=mi,
        generationSuffix=gen,
        subjectAltEmail=email or f"{alias.lower()}@example.mil",
        dodId=dodId,
        keyPassword=password,
        alias=alias,
    )


def writeRoster(path: Path, rows, header=HEADER):
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(header)
        for row in rows:
            w.writerow(row)
    return path


THREE_ROWS = [
    ["Doe", "John", "Q", "", "john.doe@example.mil", "1000000001", "", "A1"],
    ["Roe", "Jane", "R", "II", "jane.roe@example.mil", "1000000002", "", "A2"],
    ["Poe", "Ed", "A", "", "ed.poe@example.mil", "1000000003", "", "A3"],
]


class FakeToolkit:
    """Writes placeholder files instead of running openssl."""

    def __init__(self, failFor=()):
        self.failFor = set(failFor)
        self.documents = []
        self.exports = []

    def generateKeyAndCsr(self, document, profilePath, keyPath, csrPath, keyPassword=None):
        self.documents.append(document)
        cn = document.section("req_distinguished_name").get("CN")
        if Path(keyPath).stem in self.failFor:
            raise ExternalToolFailure("openssl req failed (exit 1): bad SAN")
        Path(profilePath).write_text(serializeConfig(document))
        Path(keyPath).write_text(f"KEY {cn} {keyPassword}")
        Path(csrPath).write_text(f"CSR {cn}")

    def exportPkcs12(self, certPath, keyPath, p12Path, friendlyName, keyPassword, exportPassword):
        if Path(p12Path).stem in self.failFor:
            raise ExternalToolFailure("openssl pkcs12 failed (exit 1)")
        self.exports.append((friendlyName, keyPassword, exportPassword))
        Path(p12Path).write_text(f"P12 {friendlyName}")


class FakeKeyTool:
    def __init__(self, present=()):
        self.present = set(present)
        self.imports = []

    def containsAlias(self, keystorePath, alias, storePassword):
        return alias in self.present

    def importPkcs12(self, p12Path, alias, srcStorePassword, srcKeyPassword,
                     keystorePath, destStorePassword, destKeyPassword):
        self.imports.append((alias, srcStorePassword, destStorePassword))
        self.present.add(alias)
        Path(keystorePath).write_text("\n".join(sorted(self.present)))


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(rootPath=tmp_path / "root")


@pytest.fixture
def records():
    return [
        makeRecord("A1", dodId="1000000001"),
        makeRecord("A2", gen="II", dodId="1000000002", first="Jane", last="Roe"),
        makeRecord("A3", dodId="1000000003", first="Ed", last="Poe"),
    ]
