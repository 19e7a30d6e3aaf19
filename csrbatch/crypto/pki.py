"""In-process X.509 helpers: keys, CSRs from a profile document, PKCS#12."""
from typing import Optional

from asn1crypto.core import UTF8String
from cryptography import x509
from cryptography.hazmat.primitives import serialization, hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID, ObjectIdentifier

DN_ATTRIBUTES = {
    "C": NameOID.COUNTRY_NAME,
    "ST": NameOID.STATE_OR_PROVINCE_NAME,
    "L": NameOID.LOCALITY_NAME,
    "O": NameOID.ORGANIZATION_NAME,
    "OU": NameOID.ORGANIZATIONAL_UNIT_NAME,
    "CN": NameOID.COMMON_NAME,
}

DIGESTS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}

KEY_USAGE_FLAGS = {
    "digitalSignature": "digital_signature",
    "nonRepudiation": "content_commitment",
    "keyEncipherment": "key_encipherment",
    "dataEncipherment": "data_encipherment",
    "keyAgreement": "key_agreement",
    "keyCertSign": "key_cert_sign",
    "cRLSign": "crl_sign",
    "encipherOnly": "encipher_only",
    "decipherOnly": "decipher_only",
}

EXTENDED_KEY_USAGES = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
    "OCSPSigning": ExtendedKeyUsageOID.OCSP_SIGNING,
}


def loadCert(pathOrBytes) -> x509.Certificate:
    """CA portals hand back either PEM or DER under the same .cer extension."""
    if isinstance(pathOrBytes, (bytes, bytearray)):
        data = bytes(pathOrBytes)
    else:
        with open(str(pathOrBytes), "rb") as f:
            data = f.read()
    if b"-----BEGIN" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


def loadPemPrivateKey(path, password: Optional[str] = None):
    with open(str(path), "rb") as f:
        data = f.read()
    # an unencrypted key refuses a password and vice versa
    secret = password.encode("utf-8") if password and b"ENCRYPTED" in data else None
    return serialization.load_pem_private_key(data, password=secret)


def _criticalValue(value: str):
    """openssl syntax: a leading "critical," marks the extension critical."""
    parts = [p.strip() for p in value.split(",")]
    if parts and parts[0] == "critical":
        return True, ",".join(parts[1:])
    return False, ",".join(parts)


def subjectFromSection(section) -> x509.Name:
    attrs = []
    for key, value in section.entries:
        # "0.OU" -> "OU"
        short = key.split(".")[-1]
        oid = DN_ATTRIBUTES.get(short)
        if oid is None:
            raise ValueError(f"unsupported DN field {key!r}")
        attrs.append(x509.NameAttribute(oid, value))
    return x509.Name(attrs)


def altNamesFromSection(section) -> x509.SubjectAlternativeName:
    names = []
    for key, value in section.entries:
        kind = key.split(".")[0]
        if kind == "email":
            names.append(x509.RFC822Name(value))
        elif kind == "DNS":
            names.append(x509.DNSName(value))
        elif kind == "otherName":
            oid, _, typed = value.partition(";")
            valueType, _, text = typed.partition(":")
            if valueType != "UTF8":
                raise ValueError(f"unsupported otherName type {valueType!r}")
            names.append(x509.OtherName(ObjectIdentifier(oid), UTF8String(text).dump()))
        else:
            raise ValueError(f"unsupported subjectAltName entry {key!r}")
    return x509.SubjectAlternativeName(names)


def extensionsFromSection(section, altNames):
    exts = []
    for key, raw in section.entries:
        critical, value = _criticalValue(raw)
        if key == "subjectAltName":
            exts.append((altNames, critical))
        elif key == "basicConstraints":
            isCa = value.replace(" ", "").upper().startswith("CA:TRUE")
            exts.append((x509.BasicConstraints(ca=isCa, path_length=None), critical))
        elif key == "keyUsage":
            flags = {v: False for v in KEY_USAGE_FLAGS.values()}
            for name in value.split(","):
                flags[KEY_USAGE_FLAGS[name]] = True
            exts.append((x509.KeyUsage(**flags), critical))
        elif key == "extendedKeyUsage":
            usages = [EXTENDED_KEY_USAGES.get(name) or ObjectIdentifier(name) for name in value.split(",")]
            exts.append((x509.ExtendedKeyUsage(usages), critical))
        else:
            raise ValueError(f"unsupported extension {key!r}")
    return exts


def buildKeyAndCsr(doc):
    """Returns (private key, CSR) as described by a profile document."""
    req = doc.section("req")
    bits = int(req.get("default_bits", "2048"))
    digest = DIGESTS[req.get("default_md", "sha256")]()

    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    subject = subjectFromSection(doc.section("req_distinguished_name"))
    altNames = altNamesFromSection(doc.section("alt_names"))

    builder = x509.CertificateSigningRequestBuilder().subject_name(subject)
    for ext, critical in extensionsFromSection(doc.section(req.get("req_extensions", "req_ext")), altNames):
        builder = builder.add_extension(ext, critical=critical)
    return key, builder.sign(key, digest)


def privateKeyPem(key, password: Optional[str] = None) -> bytes:
    if password:
        enc = serialization.BestAvailableEncryption(password.encode("utf-8"))
    else:
        enc = serialization.NoEncryption()
    return key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, enc)


def csrPem(csr) -> bytes:
    return csr.public_bytes(serialization.Encoding.PEM)


def pkcs12Bytes(key, cert, friendlyName: str, exportPassword: str) -> bytes:
    return pkcs12.serialize_key_and_certificates(
        name=friendlyName.encode("utf-8"),
        key=key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(exportPassword.encode("utf-8")),
    )
