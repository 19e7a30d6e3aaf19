"""Pack a directory into a zip / unpack an archive flat into a directory."""
import zipfile
from pathlib import Path
from typing import Optional

from csrbatch.common.errors import ExternalToolFailure
from csrbatch.common.process import runTool


class ZipArchiver:
    def pack(self, directory, archivePath) -> Path:
        src = Path(directory)
        out = Path(archivePath)
        try:
            with zipfile.ZipFile(out, mode="w", compression=zipfile.ZIP_DEFLATED) as z:
                for f in sorted(src.iterdir()):
                    if f.is_file():
                        z.write(f, arcname=f.name)
        except OSError as e:
            raise ExternalToolFailure(f"cannot write {out}: {e}")
        return out

    def unpack(self, archivePath, destination):
        """Extracts every member by its base name."""
        dest = Path(destination)
        try:
            with zipfile.ZipFile(archivePath, "r") as z:
                for info in z.infolist():
                    if info.is_dir():
                        continue
                    name = Path(info.filename.replace("\\", "/")).name
                    if not name:
                        continue
                    (dest / name).write_bytes(z.read(info))
        except zipfile.BadZipFile as e:
            raise ExternalToolFailure(f"{archivePath} is not a zip archive: {e}")
        except OSError as e:
            raise ExternalToolFailure(f"cannot unpack {archivePath}: {e}")


class SevenZipArchiver:
    def __init__(self, sevenZipPath: str, timeout: Optional[float] = None):
        self.sevenZipPath = sevenZipPath
        self.timeout = timeout

    def pack(self, directory, archivePath) -> Path:
        src = Path(directory)
        cmd = [self.sevenZipPath, "a", "-tzip", "-y", str(archivePath), str(src / "*")]
        runTool(cmd, self.timeout, what="7z a")
        return Path(archivePath)

    def unpack(self, archivePath, destination):
        # "e" drops the archive's folder structure
        cmd = [self.sevenZipPath, "e", "-y", f"-o{destination}", str(archivePath)]
        runTool(cmd, self.timeout, what="7z e")


def makeArchiver(config):
    if config.sevenZipPath:
        return SevenZipArchiver(config.sevenZipPath, config.toolTimeout)
    return ZipArchiver()
