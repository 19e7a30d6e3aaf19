"""Run configuration: .env / environment defaults overridden by CLI flags."""
import os
import shutil
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr

DEFAULT_PASSWORD = "default"
DEFAULT_BATCH_SIZE = 100
DEFAULT_TOOL_TIMEOUT = 30.0

TOOLKITS = ("openssl", "native")


class PipelineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    rootPath: Path
    csvFile: Optional[Path] = None

    opensslPath: str = "openssl"
    keytoolPath: str = "keytool"
    sevenZipPath: Optional[str] = None
    toolkit: str = "openssl"

    batchSize: int = DEFAULT_BATCH_SIZE
    toolTimeout: float = DEFAULT_TOOL_TIMEOUT
    workers: int = 1
    force: bool = False

    keyPassword: SecretStr = SecretStr(DEFAULT_PASSWORD)
    p12Password: SecretStr = SecretStr(DEFAULT_PASSWORD)
    keystorePassword: SecretStr = SecretStr(DEFAULT_PASSWORD)

    @property
    def outputDir(self) -> Path:
        return self.rootPath / "output"

    @property
    def csrDir(self) -> Path:
        return self.outputDir / "CSRs"

    @property
    def keyDir(self) -> Path:
        return self.outputDir / "Keys"

    @property
    def zipDir(self) -> Path:
        return self.outputDir / "Zips"

    @property
    def cerDir(self) -> Path:
        return self.outputDir / "CERs"

    @property
    def p12Dir(self) -> Path:
        return self.outputDir / "P12s"

    @property
    def keystorePath(self) -> Path:
        return self.outputDir / "keystore.jks"

    @property
    def profilePath(self) -> Path:
        return self.rootPath / "openssl.cfg"

    def keyPasswordFor(self, record) -> str:
        """A roster password wins over the run-wide one."""
        return record.keyPassword or self.keyPassword.get_secret_value()


def resolveTool(name: Optional[str]) -> Optional[str]:
    if not name:
        return name
    found = shutil.which(name)
    return found or name


def _number(args, attr, env, default, cast):
    value = getattr(args, attr, None) if args is not None else None
    if value is not None:
        return value
    raw = os.getenv(env)
    return cast(raw) if raw else default


def loadConfig(args=None, passwords=None) -> PipelineConfig:
    """Build the config once at startup.

    `args` is an argparse namespace (attributes left as None fall back to
    the environment), `passwords` maps keyPassword/p12Password/
    keystorePassword to values collected from prompts.
    """
    # .env next to where the operator runs the tool
    load_dotenv(find_dotenv(usecwd=True))

    def pick(attr, env, default=None):
        value = getattr(args, attr, None) if args is not None else None
        if value is not None:
            return value
        return os.getenv(env, default)

    root = pick("root_path", "CSRBATCH_ROOT")
    if not root:
        raise ValueError("a root path is required (--root-path or CSRBATCH_ROOT)")
    csvFile = pick("csv_file", "CSRBATCH_CSV")

    batchSize = _number(args, "batch_size", "CSRBATCH_BATCH_SIZE", DEFAULT_BATCH_SIZE, int)
    timeout = _number(args, "timeout", "CSRBATCH_TOOL_TIMEOUT", DEFAULT_TOOL_TIMEOUT, float)
    workers = _number(args, "workers", "CSRBATCH_WORKERS", 1, int)
    if batchSize < 1:
        raise ValueError("batch size must be at least 1")
    if workers < 1:
        raise ValueError("workers must be at least 1")

    toolkit = pick("toolkit", "CSRBATCH_TOOLKIT", "openssl")
    if toolkit not in TOOLKITS:
        raise ValueError(f"unknown toolkit {toolkit!r}, expected one of {', '.join(TOOLKITS)}")

    secrets = {k: SecretStr(v) for k, v in (passwords or {}).items() if v}

    return PipelineConfig(
        rootPath=Path(root),
        csvFile=Path(csvFile) if csvFile else None,
        opensslPath=resolveTool(pick("openssl", "CSRBATCH_OPENSSL", "openssl")),
        keytoolPath=resolveTool(pick("keytool", "CSRBATCH_KEYTOOL", "keytool")),
        sevenZipPath=resolveTool(pick("seven_zip", "CSRBATCH_7ZIP")),
        toolkit=toolkit,
        batchSize=batchSize,
        toolTimeout=timeout,
        workers=workers,
        force=bool(getattr(args, "force", False)),
        **secrets,
    )
