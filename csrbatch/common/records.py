"""Roster rows (identity records) and the per-record pipeline states."""
import csv
import enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from csrbatch.common.errors import DuplicateAlias, InvalidRecord
from csrbatch.common.naming import canonicalName

REQUIRED_COLUMNS = ("lname", "fname", "mi", "gen", "san", "dodid", "alias")


class RecordState(str, enum.Enum):
    PENDING = "Pending"
    KEY_CSR_GENERATED = "KeyCsrGenerated"
    BATCHED = "Batched"
    CERT_RECEIVED = "CertReceived"
    RENAMED = "Renamed"
    BUNDLED = "Bundled"
    KEYSTORED = "Keystored"
    SKIPPED = "Skipped"
    FAILED = "Failed"


class IdentityRecord(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    lastName: str
    firstName: str
    middleInitial: str = ""
    generationSuffix: str = ""
    subjectAltEmail: str
    dodId: str
    keyPassword: Optional[str] = None
    alias: str

    @field_validator("generationSuffix")
    @classmethod
    def stripLeadingDots(cls, v: str) -> str:
        # "II" and ".II" must both end up as ".II" in the canonical name
        return v.lstrip(".")

    @field_validator("keyPassword")
    @classmethod
    def emptyPasswordIsNone(cls, v):
        return v or None

    @field_validator("dodId")
    @classmethod
    def dodIdRequired(cls, v: str) -> str:
        if not v:
            raise ValueError("dodid is empty")
        return v

    @field_validator("alias")
    @classmethod
    def aliasIsFileStem(cls, v: str) -> str:
        if not v:
            raise ValueError("alias is empty")
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"alias {v!r} is not usable as a file name")
        return v

    @classmethod
    def fromRow(cls, row: Dict[str, str], rowNumber: int = 0) -> "IdentityRecord":
        row = {k.strip().lower(): (v or "") for k, v in row.items() if k is not None}
        missing = [c for c in REQUIRED_COLUMNS if c not in row]
        if missing:
            raise InvalidRecord(f"row {rowNumber}: missing column(s) {', '.join(missing)}")
        try:
            return cls(
                lastName=row["lname"],
                firstName=row["fname"],
                middleInitial=row["mi"],
                generationSuffix=row["gen"],
                subjectAltEmail=row["san"],
                dodId=row["dodid"],
                keyPassword=row.get("password"),
                alias=row["alias"],
            )
        except ValueError as e:
            # pydantic.ValidationError is a ValueError
            raise InvalidRecord(f"row {rowNumber}: {_firstError(e)}") from e


def _firstError(e: ValueError) -> str:
    errors = getattr(e, "errors", None)
    if callable(errors):
        details = errors()
        if details:
            return details[0].get("msg", str(e))
    return str(e)


def validateRoster(records: List[IdentityRecord]) -> None:
    """Reject alias or canonical-name collisions before anything touches disk."""
    aliases = {}
    names = {}
    for i, rec in enumerate(records, start=1):
        key = rec.alias.casefold()
        if key in aliases:
            raise DuplicateAlias(
                f"alias {rec.alias!r} on roster entry {i} already used by entry {aliases[key]}"
            )
        aliases[key] = i

        cn = canonicalName(rec)
        if cn in names:
            raise DuplicateAlias(
                f"canonical name {cn!r} on roster entry {i} already used by entry {names[cn]}"
            )
        names[cn] = i


def loadRoster(path) -> List[IdentityRecord]:
    p = Path(path)
    records = []
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames:
            raise InvalidRecord(f"{p}: roster has no header row")
        # header is line 1, first data row is line 2
        for rowNumber, row in enumerate(reader, start=2):
            if not any(isinstance(v, str) and v.strip() for v in row.values()):
                continue
            records.append(IdentityRecord.fromRow(row, rowNumber))

    validateRoster(records)
    return records
