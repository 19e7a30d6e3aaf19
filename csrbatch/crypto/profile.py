"""Per-record CSR profile (an openssl `req` config) as structured data."""
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict

from csrbatch.common.naming import canonicalName, principalName, subjectAltEmail

KEY_BITS = 2048
DIGEST = "sha256"
VALIDITY_DAYS = 365

# Most significant first; the numeric prefixes let openssl take repeated OUs.
ORGANIZATION_FIELDS = [
    ("C", "US"),
    ("O", "U.S. Government"),
    ("0.OU", "DoD"),
    ("1.OU", "PKI"),
    ("2.OU", "CONTRACTOR"),
]

EXTENSION_POLICY = [
    ("subjectAltName", "@alt_names"),
    ("basicConstraints", "CA:FALSE"),
    ("keyUsage", "nonRepudiation,digitalSignature"),
    ("extendedKeyUsage", "clientAuth,1.3.6.1.5.5.7.3.4"),
]


class ConfigSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    entries: Tuple[Tuple[str, str], ...]

    def get(self, key, default=None):
        for k, v in self.entries:
            if k == key:
                return v
        return default


class ConfigDocument(BaseModel):
    model_config = ConfigDict(frozen=True)

    sections: Tuple[ConfigSection, ...]

    def section(self, name: str) -> ConfigSection:
        for s in self.sections:
            if s.name == name:
                return s
        raise KeyError(name)


def _splitLine(line: str) -> Tuple[str, str]:
    key, _, value = line.partition(" = ")
    return key, value


def emitConfig(record, encryptKey: bool = False) -> ConfigDocument:
    """Build every section from scratch for `record`.

    `encryptKey` is true only when a non-default key password is in play.
    """
    req = [
        ("default_bits", str(KEY_BITS)),
        ("default_md", DIGEST),
        ("prompt", "no"),
        ("encrypt_key", "yes" if encryptKey else "no"),
        ("days", str(VALIDITY_DAYS)),
        ("distinguished_name", "req_distinguished_name"),
        ("req_extensions", "req_ext"),
    ]
    dn = list(ORGANIZATION_FIELDS) + [("CN", canonicalName(record))]
    altNames = [_splitLine(subjectAltEmail(record)), _splitLine(principalName(record))]

    return ConfigDocument(sections=(
        ConfigSection(name="req", entries=tuple(req)),
        ConfigSection(name="req_distinguished_name", entries=tuple(dn)),
        ConfigSection(name="req_ext", entries=tuple(EXTENSION_POLICY)),
        ConfigSection(name="alt_names", entries=tuple(altNames)),
    ))


def serializeConfig(doc: ConfigDocument) -> str:
    lines: List[str] = []
    for section in doc.sections:
        if lines:
            lines.append("")
        lines.append(f"[ {section.name} ]")
        for key, value in section.entries:
            lines.append(f"{key} = {value}")
    return "\n".join(lines) + "\n"
