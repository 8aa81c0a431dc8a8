from functools import lru_cache
from pathlib import Path
from typing import Union


class PromptRegistry:
    """Markdown prompt templates with ``str.format`` placeholders; literal braces are doubled."""

    def __init__(self, prompts_dir: Union[str, Path]):
        self.prompts_dir = Path(prompts_dir)

    @lru_cache(maxsize=32)
    def get_prompt(self, name: str) -> str:
        path = self.prompts_dir / f"{name}.md"
        if not path.is_file():
            raise FileNotFoundError(f"Prompt '{name}' not found at {path}")
        return path.read_text(encoding="utf-8")

    def render(self, name: str, **params) -> str:
        return self.get_prompt(name).format(**params)


registry = PromptRegistry(Path(__file__).resolve().parent)
