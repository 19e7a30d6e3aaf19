from pathlib import Path

from csrbatch.common.errors import FilesystemError


def ensureDir(path) -> Path:
    """Create `path` (and parents) if absent; an existing directory is left alone."""
    p = Path(path)
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"cannot create directory {p}: {e}")
    return p


def ensureLayout(config):
    for d in (config.rootPath, config.csrDir, config.keyDir, config.zipDir,
              config.cerDir, config.p12Dir):
        ensureDir(d)
