"""Error kinds raised across the request/issuance pipeline."""


class CsrBatchError(Exception):
    pass


class InvalidRecord(CsrBatchError):
    """Roster row that cannot be turned into a usable identity."""


class DuplicateAlias(CsrBatchError):
    """Two roster rows would write to the same file names."""


class ExternalToolFailure(CsrBatchError):
    """openssl / keytool / archiver returned non-zero, timed out or was missing."""


class MissingArtifact(CsrBatchError):
    """A file the previous stage should have produced is not there."""


class FilesystemError(CsrBatchError):
    pass
