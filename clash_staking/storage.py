"""
Clash Staking — JSON Document Storage
© 2025 Karlheinz Beismann — VEra-Resonance Project
Licensed under the Apache License, Version 2.0

History, leaderboard and snapshot documents are flat JSON files that are
rewritten completely on every run. A run writes its documents as one group:
all of them are staged on disk before the first one is replaced, and the
history is replaced last.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from .errors import EventDecodingError
from .models import StakingEventHistory

logger = logging.getLogger(__name__)

STAKING_NAME = "clash-staking"

PathLike = Union[str, Path]


def _slug(name: str) -> str:
    return "-".join(name.split(" "))


def history_file_path(folder: PathLike, source: str, name: str = STAKING_NAME) -> Path:
    return Path(folder) / f"{_slug(name)}-history-{source}.json"


def stakers_file_path(folder: PathLike, source: str, name: str = STAKING_NAME) -> Path:
    return Path(folder) / f"{_slug(name)}-stakers-{source}.json"


def snapshot_file_path(folder: PathLike, snapshot_timestamp: int, source: str, name: str = STAKING_NAME) -> Path:
    return Path(folder) / f"{_slug(name)}-stakers-snapshot-{snapshot_timestamp}-{source}.json"


def dump_document(document: Any) -> str:
    """Serialize a document; identical input gives identical bytes"""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def load_history(path: PathLike) -> StakingEventHistory:
    """
    Load a stored staking history

    Returns an empty history when the file does not exist yet.

    Raises:
        EventDecodingError: the file exists but is not a valid history
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No staking history at {path}, starting empty")
        return StakingEventHistory()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise EventDecodingError(f"Could not read staking history {path}: {e}") from e

    history = StakingEventHistory.from_dict(data)
    logger.info(f"Loaded staking history from {path}")
    return history


def write_documents(documents: Dict[PathLike, Any]) -> List[Path]:
    """
    Write several JSON documents as one group

    Every document is written to a temp file next to its target first. Only
    when all temp files are on disk are they moved into place with
    os.replace, in the given order. Whatever happens, temp files that were
    not moved into place are removed again; a failure while staging leaves
    the previous documents untouched. Callers pass the document the others
    are derived from last, so a failed rename never leaves a derived
    document newer than its source.

    Returns:
        Paths written, in the given order
    """
    staged: List[Tuple[str, Path]] = []
    written: List[Path] = []
    try:
        for target, document in documents.items():
            target = Path(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            content = dump_document(document)

            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
            )
            staged.append((tmp_name, target))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

        for tmp_name, target in staged:
            os.replace(tmp_name, target)
            written.append(target)
            logger.debug(f"Wrote {target}")
    finally:
        for tmp_name, _ in staged[len(written):]:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
    return written
