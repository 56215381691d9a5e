"""Prompt registry: maps a prompt mode to its system prompt."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

_DEFAULT_PATH = Path(__file__).parent / "modes.yaml"


class PromptMode(str, Enum):
    """Selectable system-prompt flavours."""

    DEFAULT = "default"
    CREATIVE = "creative"
    ANALYTICAL = "analytical"
    CODING = "coding"
    LEARNING = "learning"


def load_prompt_config(path: Path | None = None) -> dict[str, Any]:
    """Load the prompt configuration from a YAML file.

    Args:
        path: Optional path to a prompt YAML file.
              Defaults to modes.yaml in this directory.

    Returns:
        Dictionary with ``master`` and ``modes`` keys.

    Raises:
        FileNotFoundError: If the prompt file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    config_path = path or _DEFAULT_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {config_path}")

    with open(config_path) as f:
        config: dict[str, Any] = yaml.safe_load(f)

    return config


def build_system_prompts(config: dict[str, Any] | None = None) -> dict[str, str]:
    """Compose the master prompt with each mode's additions."""
    if config is None:
        config = load_prompt_config()

    master = config.get("master", "You are a helpful AI assistant.").strip()
    prompts: dict[str, str] = {}
    for mode, extra in (config.get("modes") or {}).items():
        extra = (extra or "").strip()
        prompts[mode] = f"{master}\n\n{extra}" if extra else master
    prompts.setdefault(PromptMode.DEFAULT.value, master)
    return prompts


@lru_cache(maxsize=1)
def _system_prompts() -> dict[str, str]:
    return build_system_prompts()


def get_system_prompt(mode: PromptMode | str = PromptMode.DEFAULT) -> str:
    """Return the system prompt for ``mode``, falling back to the default."""
    key = mode.value if isinstance(mode, PromptMode) else mode
    prompts = _system_prompts()
    return prompts.get(key) or prompts[PromptMode.DEFAULT.value]
