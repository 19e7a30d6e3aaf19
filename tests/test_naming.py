from types import SimpleNamespace

import pytest

from conftest import makeRecord
from csrbatch.common import naming
from csrbatch.common.errors import InvalidRecord


@pytest.mark.parametrize("raw, expected", [("", ""), ("II", ".II"), ("Jr.", ".Jr.")])
def test_normalize_suffix(raw, expected):
    assert naming.normalizeSuffix(raw) == expected


def test_canonical_name_without_generation():
    rec = makeRecord(first="John", last="Doe", mi="Q", dodId="1234567890")
    assert naming.canonicalName(rec) == "John.Doe.Q.1234567890"


def test_canonical_name_with_generation_has_single_dots():
    rec = makeRecord(gen="II", dodId="1234567890")
    assert naming.canonicalName(rec) == "John.Doe.Q.II.1234567890"
    assert ".." not in naming.canonicalName(rec)


def test_dotted_generation_is_not_doubled():
    rec = makeRecord(gen=".II")
    assert naming.canonicalName(rec) == "John.Doe.Q.II.1234567890"


def test_san_lines():
    rec = makeRecord(email="john.doe@example.mil", dodId="1234567890")
    assert naming.subjectAltEmail(rec) == "email = john.doe@example.mil"
    assert naming.principalName(rec) == "otherName = 1.3.6.1.4.1.311.20.2.3;UTF8:1234567890@mil"


def test_artifact_names_use_alias():
    rec = makeRecord(alias="A7")
    assert naming.keyFileName(rec) == "A7.key"
    assert naming.csrFileName(rec) == "A7.csr"
    assert naming.certFileName(rec) == "A7.cer"
    assert naming.p12FileName(rec) == "A7.p12"
    assert naming.issuedCertFileName(rec) == "John.Doe.Q.1234567890.cer"


@pytest.mark.parametrize("fn", [naming.keyFileName, naming.csrFileName,
                                naming.certFileName, naming.p12FileName])
def test_empty_alias_is_rejected(fn):
    rec = SimpleNamespace(alias="")
    with pytest.raises(InvalidRecord):
        fn(rec)
