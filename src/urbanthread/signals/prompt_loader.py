"""Prompt loading utilities."""

from __future__ import annotations

from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[3]

PROMPT_FOLDERS = {
    "tp_": "text_plausibility",
}


def prompt_path(prompt_version: str) -> Path:
    """Resolve a prompt file path from a prompt_version like 'tp_v001'."""
    for prefix, folder in PROMPT_FOLDERS.items():
        if prompt_version.startswith(prefix):
            file_stub = prompt_version.removeprefix(prefix)
            if not file_stub:
                break
            return PROJECT_ROOT / "prompts" / folder / f"{file_stub}.md"

    raise ValueError(f"prompt_version must start with one of {sorted(PROMPT_FOLDERS)!r}")


def load_prompt(prompt_version: str) -> str:
    """Load a prompt file as UTF-8 text."""
    path = prompt_path(prompt_version)
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    return path.read_text(encoding="utf-8").strip()
