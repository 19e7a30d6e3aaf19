"""Names derived from an identity record: CN, SAN lines and artifact file names.

The canonical name is both the CSR's Common Name and the stem the CA portal
uses for the issued certificate, so everything here has to stay byte-stable.
"""
from csrbatch.common.errors import InvalidRecord

UPN_OID = "1.3.6.1.4.1.311.20.2.3"
UPN_REALM = "mil"


def normalizeSuffix(s: str) -> str:
    if s == "":
        return ""
    return "." + s


def canonicalName(record) -> str:
    return (
        record.firstName + "." + record.lastName + "." + record.middleInitial
        + normalizeSuffix(record.generationSuffix) + "." + record.dodId
    )


def subjectAltEmail(record) -> str:
    return "email = " + record.subjectAltEmail


def principalName(record) -> str:
    return f"otherName = {UPN_OID};UTF8:{record.dodId}@{UPN_REALM}"


def _aliasFile(record, ext: str) -> str:
    if not record.alias:
        raise InvalidRecord("record has an empty alias")
    return record.alias + "." + ext


def keyFileName(record) -> str:
    return _aliasFile(record, "key")


def csrFileName(record) -> str:
    return _aliasFile(record, "csr")


def certFileName(record) -> str:
    return _aliasFile(record, "cer")


def p12FileName(record) -> str:
    return _aliasFile(record, "p12")


def issuedCertFileName(record) -> str:
    """File name the CA hands the certificate back under."""
    return canonicalName(record) + ".cer"
