"""Spoken prompt catalog loading and rendering."""

from datetime import date, timedelta
from functools import lru_cache
from pathlib import Path

import yaml
from jinja2 import Template

from src.shared.intents import SPANISH_MONTHS
from src.shared.types import ASAP

_TEMPLATES_DIR = Path(__file__).parent.parent.parent / "prompt_templates"


@lru_cache(maxsize=8)
def load_catalog(language: str) -> dict[str, str]:
    """Load the prompt catalog for a language from YAML.

    Args:
        language: Catalog name, e.g. "es-CL".

    Returns:
        Mapping of prompt key to Jinja2 template source.

    Raises:
        FileNotFoundError: If the catalog file does not exist.
    """
    path = _TEMPLATES_DIR / f"{language}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Prompt catalog not found: {language}")
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data["prompts"]


def render_prompt(key: str, language: str = "es-CL", **variables: object) -> str:
    """Render one prompt with Jinja2 variables.

    Args:
        key: Prompt key in the catalog.
        language: Catalog name.
        **variables: Key-value pairs for Jinja2 substitution.

    Returns:
        Rendered prompt text.

    Raises:
        KeyError: If the catalog has no such prompt.
    """
    catalog = load_catalog(language)
    if key not in catalog:
        raise KeyError(f"Unknown prompt: {key}")
    return " ".join(Template(catalog[key]).render(**variables).split())


class PromptRenderer:
    """Prompt catalog bound to one language, handed to phase handlers."""

    def __init__(self, language: str = "es-CL") -> None:
        self.language = language

    def render(self, key: str, **variables: object) -> str:
        return render_prompt(key, self.language, **variables)


def spoken_date(iso_date: str | None, today: date) -> str:
    """Render an ISO date the way the bot says it.

    Args:
        iso_date: Date as YYYY-MM-DD, "ASAP" or None.
        today: Reference date for "hoy" and "mañana".

    Returns:
        "hoy", "mañana", "el 15 de marzo", or "en la fecha indicada".
    """
    if not iso_date or iso_date == ASAP:
        return "en la fecha indicada"
    try:
        value = date.fromisoformat(iso_date)
    except ValueError:
        return f"el {iso_date}"
    if value == today:
        return "hoy"
    if value == today + timedelta(days=1):
        return "mañana"
    return f"el {value.day} de {SPANISH_MONTHS[value.month - 1]}"
