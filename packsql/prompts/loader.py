"""Prompt loading and rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True)
class PromptEntry:
    """Loaded prompt content and metadata."""

    content: str
    metadata: dict[str, Any]


class FrontMatterLoader(FileSystemLoader):
    """Jinja2 loader that strips YAML front matter."""

    def get_source(self, environment: Environment, template: str):  # type: ignore[override]
        source, filename, uptodate = super().get_source(environment, template)
        if source.startswith("---"):
            parts = source.split("---", 2)
            if len(parts) == 3:
                source = parts[2].lstrip()
        return source, filename, uptodate


class PromptLoader:
    """Load and render prompt templates shipped with the package."""

    def __init__(self, prompts_dir: str | Path | None = None) -> None:
        self.prompts_dir = Path(prompts_dir) if prompts_dir else TEMPLATES_DIR
        self.cache: dict[str, PromptEntry] = {}
        self._env = Environment(
            loader=FrontMatterLoader(str(self.prompts_dir)),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )

    def register_filters(self, **filters: Any) -> None:
        """Make extra Jinja2 filters available to templates."""
        self._env.filters.update(filters)

    def load(self, prompt_path: str) -> str:
        """
        Load raw prompt content (front matter removed).

        Args:
            prompt_path: Path relative to the templates directory (e.g., "sql_pack.md")
        """
        if prompt_path in self.cache:
            return self.cache[prompt_path].content

        file_path = self.prompts_dir / prompt_path
        if not file_path.exists():
            raise FileNotFoundError(f"Prompt not found: {file_path}")

        content = file_path.read_text(encoding="utf-8")
        metadata: dict[str, Any] = {}
        prompt_content = content

        if content.startswith("---"):
            parts = content.split("---", 2)
            if len(parts) == 3:
                metadata = yaml.safe_load(parts[1]) or {}
                prompt_content = parts[2].lstrip()

        self.cache[prompt_path] = PromptEntry(content=prompt_content, metadata=metadata)
        return prompt_content

    def render(self, prompt_path: str, **variables: Any) -> str:
        """
        Render a prompt template with Jinja2.

        Example:
            prompt = loader.render("sql_refine.md", question=question, previous_sql=sql)
        """
        try:
            template = self._env.get_template(prompt_path)
        except TemplateNotFound as exc:
            raise FileNotFoundError(f"Prompt not found: {prompt_path}") from exc
        return template.render(**variables).strip() + "\n"

    def get_metadata(self, prompt_path: str) -> dict[str, Any]:
        """Return front matter metadata for a prompt (loads if needed)."""
        if prompt_path not in self.cache:
            self.load(prompt_path)
        return self.cache[prompt_path].metadata
