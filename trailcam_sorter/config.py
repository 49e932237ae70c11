"""
Run configuration for the sorter.

Values come from command-line flags, with endpoint settings falling back to the
same environment variables the Ollama and OpenAI tooling read.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_MODEL = "llava:latest"
DEFAULT_MAX_WIDTH = 1200
DEFAULT_REGION = "Michigan"
DEFAULT_OLLAMA_URL = "http://localhost:11434"

# The model gets loaded when the first frame is sent, which can take a while
DEFAULT_REQUEST_TIMEOUT_SECONDS = 120.0


@dataclass
class SorterConfig:
    """Everything needed to build a vision client and sort one directory."""
    media_dir: str
    model: str = DEFAULT_MODEL
    max_width: int = DEFAULT_MAX_WIDTH
    region: str = DEFAULT_REGION
    ollama_endpoint: Optional[str] = field(default_factory=lambda: os.getenv("OLLAMA_HOST") or None)
    openai_endpoint: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_BASE_URL") or None)
    openai_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY") or None)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    check_health: bool = True
    verbose: bool = False

    @property
    def backend(self) -> str:
        """An OpenAI-compatible endpoint, when configured, wins over Ollama."""
        return "openai" if self.openai_endpoint else "ollama"

    @property
    def ollama_url(self) -> str:
        url = self.ollama_endpoint or DEFAULT_OLLAMA_URL
        # OLLAMA_HOST is often given as bare host:port
        if "://" not in url:
            url = f"http://{url}"
        return url.rstrip('/')
