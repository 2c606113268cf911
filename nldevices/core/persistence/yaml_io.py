"""
YAML file persistence — atomic read/write for inventory records.

Every record under devices/ is a YAML file. Writes are atomic
(write to temp file, then rename) so a crash mid-write never leaves a
half-written device, state or history file behind.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

logger = logging.getLogger(__name__)


def dump_model(model: BaseModel) -> str:
    """Serialize a model to YAML text, keeping field order."""
    data = model.model_dump(mode="json")
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)


def read_yaml(path: Path) -> Any:
    """Parse a YAML file. Raises OSError / yaml.YAMLError to the caller."""
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def write_atomic(path: Path, content: str) -> None:
    """Write text to ``path`` via a temp file in the same directory.

    Args:
        path: Target file.
        content: Full file content.

    Raises:
        OSError: If the directory cannot be created or the write fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.stem}_",
        suffix=".tmp",
    )
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        tmp.replace(path)
        logger.debug("Wrote %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


def write_model(model: BaseModel, path: Path) -> None:
    """Atomically write a model as YAML."""
    write_atomic(path, dump_model(model))
