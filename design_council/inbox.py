"""Markdown inbox: each .md file is one design request, optionally with frontmatter overrides."""

import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import frontmatter

from design_council.session import DesignSessionConfig


@dataclass
class InboxRequest:
    path: Path
    request: str
    metadata: dict


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """mkdir -p both folders."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Pending requests, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def parse_file(file_path: Path) -> InboxRequest:
    """Parse a markdown design request with optional YAML frontmatter.

    Recognised frontmatter keys: max_turns, min_turns, threshold.
    Anything else is kept in metadata but ignored.
    """
    post = frontmatter.load(str(file_path))
    return InboxRequest(path=file_path, request=post.content.strip(), metadata=dict(post.metadata))


def session_config_for(
    metadata: dict,
    base: DesignSessionConfig,
    *,
    max_turns: int | None = None,
    min_turns: int | None = None,
    threshold: float | None = None,
) -> DesignSessionConfig:
    """Per-file session settings. Precedence: CLI flag > frontmatter > config default."""

    def pick(cli_value, key, default, cast):
        if cli_value is not None:
            return cli_value
        if key in metadata:
            return cast(metadata[key])
        return default

    return DesignSessionConfig(
        max_turns=pick(max_turns, "max_turns", base.max_turns, int),
        min_turns=pick(min_turns, "min_turns", base.min_turns, int),
        confidence_threshold=pick(threshold, "threshold", base.confidence_threshold, float),
    )


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move a processed request into `archive_dir` and return its new path.

    The name gets a minute-resolution timestamp, plus a "FAILED_" prefix when
    the run failed. A numeric suffix keeps two same-minute archives apart.
    """
    stamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    label = "FAILED_" if failed else ""
    dest = archive_dir / f"{label}{stamp}_{file_path.name}"
    n = 1
    while dest.exists():
        dest = archive_dir / f"{label}{stamp}_{file_path.stem}-{n}{file_path.suffix}"
        n += 1
    shutil.move(str(file_path), str(dest))
    return dest
