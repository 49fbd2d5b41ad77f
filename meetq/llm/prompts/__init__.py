"""
Meeting prompt templates.

Templates are `.txt` files next to this module using str.format placeholders.
MEETQ_CLASSIFIER_PROMPT selects an alternate classifier template by file stem,
so a reworded prompt can be trialled without a code change.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent

CLASSIFIER_PROMPT_NAME = os.getenv("MEETQ_CLASSIFIER_PROMPT", "classifier_prompt")


class PromptLoader:
    """Reads templates once and keeps them for the life of the process."""

    def __init__(self, prompts_dir: Path | None = None):
        self.prompts_dir = prompts_dir or PROMPTS_DIR
        self._templates: dict[str, str] = {}
        self._lock = threading.Lock()

    def load_prompt(self, prompt_name: str) -> str:
        """
        Raises:
            FileNotFoundError: no `<prompt_name>.txt` in the prompts directory
        """
        with self._lock:
            cached = self._templates.get(prompt_name)
        if cached is not None:
            return cached

        path = self.prompts_dir / f"{prompt_name}.txt"
        if not path.is_file():
            raise FileNotFoundError(f"Prompt template not found: {path}")
        template = path.read_text(encoding="utf-8")

        with self._lock:
            self._templates[prompt_name] = template
        return template

    def get_classifier_prompt(self, **fields: str) -> str:
        """
        Fill the meeting classifier template.

        Expected fields: org_name, org_domain, clients_json, projects_json,
        title, description, organizer, attendees, external_domains.

        Raises:
            ValueError: the template names a field that was not supplied
        """
        template = self.load_prompt(CLASSIFIER_PROMPT_NAME)
        try:
            return template.format(**fields)
        except KeyError as e:
            raise ValueError(f"Classifier prompt needs field {e.args[0]!r}") from e

    def reload(self) -> None:
        """Drop cached templates; the next load reads from disk."""
        with self._lock:
            self._templates.clear()


_loader = PromptLoader()


def get_classifier_prompt(**fields: str) -> str:
    return _loader.get_classifier_prompt(**fields)


def reload_prompts() -> None:
    _loader.reload()
