"""
Prompt Loader - Loads prompts from text files with hot reloading support.

Prompts are organized in subdirectories:
- resolver/ - Multiplayer action resolution
- narrator/ - Opening and new-day narration
- console/ - Single-player possibility check, classification and outcomes

Templates are filled with str.format, so literal braces are doubled.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PromptLoader:
    """Loads and caches prompts from text files with hot reloading support."""

    def __init__(self, prompts_dir: Path | None = None):
        if prompts_dir is None:
            prompts_dir = Path(__file__).parent / "prompts"

        self.prompts_dir = Path(prompts_dir)
        self._cache: dict[str, str] = {}
        self._file_timestamps: dict[str, float] = {}

        self.reload_all()

    def _get_prompt_path(self, category: str, filename: str) -> Path:
        return self.prompts_dir / category / filename

    def _read_prompt_file(self, category: str, filename: str) -> str:
        """Read a prompt file and cache its timestamp."""
        path = self._get_prompt_path(category, filename)
        if not path.exists():
            raise FileNotFoundError(
                f"Prompt file not found: {path}\n"
                f"Expected location: {self.prompts_dir}/{category}/{filename}"
            )

        content = path.read_text(encoding="utf-8")
        self._file_timestamps[f"{category}/{filename}"] = path.stat().st_mtime
        return content

    def get_prompt(self, category: str, filename: str, reload: bool = False) -> str:
        """
        Get a prompt from cache or file.

        Args:
            category: Subdirectory name (e.g., 'resolver', 'narrator')
            filename: Prompt filename (e.g., 'system_prompt.txt')
            reload: If True, force reload from file even if cached

        Returns:
            Prompt content as string
        """
        cache_key = f"{category}/{filename}"
        path = self._get_prompt_path(category, filename)

        needs_reload = reload or cache_key not in self._cache

        # Hot reload: check if file has been modified since last load
        if not needs_reload and path.exists():
            if path.stat().st_mtime > self._file_timestamps.get(cache_key, 0):
                needs_reload = True
                logger.info(f"Hot reloading modified prompt: {cache_key}")

        if needs_reload:
            if path.exists():
                logger.debug(f"Loading prompt: {cache_key}")
                self._cache[cache_key] = self._read_prompt_file(category, filename)
            elif cache_key in self._cache:
                logger.warning(f"Prompt file deleted but using cached version: {cache_key}")
            else:
                raise FileNotFoundError(
                    f"Prompt file not found: {path}\n"
                    f"Expected location: {self.prompts_dir}/{category}/{filename}"
                )

        return self._cache[cache_key]

    def reload_all(self):
        """Reload all prompts from files."""
        logger.info(f"Loading prompts from: {self.prompts_dir}")
        self._cache.clear()
        self._file_timestamps.clear()

        if not self.prompts_dir.exists():
            logger.warning(f"Prompts directory does not exist: {self.prompts_dir}")
            return

        loaded_count = 0
        for category_dir in self.prompts_dir.iterdir():
            if not category_dir.is_dir():
                continue
            for prompt_file in category_dir.glob("*.txt"):
                cache_key = f"{category_dir.name}/{prompt_file.name}"
                try:
                    self._cache[cache_key] = self._read_prompt_file(
                        category_dir.name, prompt_file.name
                    )
                    loaded_count += 1
                except OSError as e:
                    logger.error(f"Failed to load prompt {cache_key}: {e}")

        logger.info(f"Loaded {loaded_count} prompt file(s)")


_loader: PromptLoader | None = None


def get_loader() -> PromptLoader:
    """Get the global prompt loader instance."""
    global _loader
    if _loader is None:
        _loader = PromptLoader()
    return _loader


def reload_prompts():
    """Reload all prompts (useful during development)."""
    get_loader().reload_all()
