"""
Vision-language model clients for trail camera frames.

Two backends share one capability interface:

* OllamaVisionClient talks to a local Ollama server (/api/generate).
* OpenAIVisionClient talks to any OpenAI-compatible chat completions endpoint
  (OpenAI itself, vLLM, llama.cpp server, ...).

Clients only send one frame with one prompt and return the model's raw text.
Judging whether that text is good enough lives in trailcam_sorter.gates.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from trailcam_sorter.config import SorterConfig
from trailcam_sorter.errors import TransportError
from trailcam_sorter.image_processor import ImageProcessor
from trailcam_sorter.logging_config import get_logger

logger = get_logger(__name__)

QUALITY_PROMPT = (
    "This is a still image from an outdoor trail camera. Rate its image quality on a "
    "scale of 1-5 (5 is the best), especially considering motion blur and clarity of "
    "the subject. Your response MUST be a single number."
)


def classification_prompt(region: str) -> str:
    """Build the classification prompt, biased toward species plausible in `region`."""
    return (
        f"This is an image frame from an outdoor trail camera in {region}. If the image "
        "shows an animal, identify what kind of animal it is. Your response MUST be a "
        "single word. If there is no animal, reply with \"none\". If there is an animal "
        "but you can't guess what it is, reply \"unknown\"."
    )


class VisionClient(ABC):
    """Sends a single frame plus prompt to a vision model and returns its raw answer."""

    def __init__(self, server_url: str, model_name: str, timeout: float = 120.0):
        self.server_url = server_url.rstrip('/')
        self.model_name = model_name
        self.timeout = timeout
        self.session = requests.Session()

    @abstractmethod
    def generate(self, prompt: str, frame: bytes) -> str:
        """Run one prompt against one frame and return the model's text."""
        pass

    @abstractmethod
    def check_server_health(self) -> bool:
        """Check whether the server is running and responsive."""
        pass

    def query_quality(self, frame: bytes) -> str:
        return self.generate(QUALITY_PROMPT, frame)

    def query_label(self, frame: bytes, region: str) -> str:
        return self.generate(classification_prompt(region), frame)

    def _post_json(self, path: str, payload: Dict[str, Any],
                   headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST a JSON payload, mapping every transport-level failure to TransportError."""
        url = f"{self.server_url}{path}"
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Could not reach {url}: {e}") from e

        if response.status_code != 200:
            raise TransportError(f"HTTP {response.status_code} from {url}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {url}: {response.text[:200]}") from e

        if not isinstance(data, dict):
            raise TransportError(f"Expected a JSON object from {url}, got {type(data).__name__}")
        return data


class OllamaVisionClient(VisionClient):
    """Handles VLM inference via Ollama server."""

    def __init__(self, server_url: str = "http://localhost:11434", model_name: str = "llava:latest",
                 timeout: float = 120.0, keep_alive: str = "5m"):
        super().__init__(server_url, model_name, timeout)
        self.keep_alive = keep_alive

    def generate(self, prompt: str, frame: bytes) -> str:
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "images": [ImageProcessor.to_base64(frame)],
            "stream": False,
            "keep_alive": self.keep_alive,
        }
        response_data = self._post_json("/api/generate", payload)

        if not isinstance(response_data.get('response'), str):
            raise TransportError("No response field in Ollama response")
        return response_data['response']

    def list_models(self) -> List[str]:
        try:
            response = self.session.get(f"{self.server_url}/api/tags", timeout=10)
            response.raise_for_status()
            return [model['name'] for model in response.json().get('models', [])]
        except (requests.exceptions.RequestException, ValueError, KeyError, AttributeError, TypeError) as e:
            logger.warning(f"Could not list Ollama models: {e}")
            return []

    def check_server_health(self) -> bool:
        try:
            response = self.session.get(f"{self.server_url}/api/tags", timeout=5)
        except requests.exceptions.RequestException as e:
            print(f"❌ Could not connect to Ollama server at {self.server_url}: {e}")
            return False

        if response.status_code != 200:
            print(f"❌ Ollama server returned status {response.status_code}")
            return False
        print(f"✅ Ollama server is running at {self.server_url}")
        return True

    def check_model_available(self) -> bool:
        """Check whether the configured model has been pulled (version tags allowed)."""
        available_models = self.list_models()
        if any(self.model_name in model for model in available_models):
            print(f"✅ Model {self.model_name} is available")
            return True

        print(f"❌ Model {self.model_name} not found")
        print(f"Available models: {', '.join(available_models)}")
        print(f"\nTo install the model, run: ollama pull {self.model_name}")
        return False


class OpenAIVisionClient(VisionClient):
    """Handles VLM inference via an OpenAI-compatible chat completions API."""

    def __init__(self, server_url: str, model_name: str, api_key: Optional[str] = None,
                 timeout: float = 120.0):
        # Base URLs are conventionally given with the /v1 suffix (OPENAI_BASE_URL)
        server_url = server_url.rstrip('/')
        if server_url.endswith('/v1'):
            server_url = server_url[:-3]
        super().__init__(server_url, model_name, timeout)
        self.api_key = api_key

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def generate(self, prompt: str, frame: bytes) -> str:
        image_b64 = ImageProcessor.to_base64(frame)
        payload = {
            "model": self.model_name,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": prompt
                        },
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:image/jpeg;base64,{image_b64}"
                            }
                        }
                    ]
                }
            ]
        }
        response_data = self._post_json("/v1/chat/completions", payload, headers=self._headers())

        if not response_data.get('choices'):
            raise TransportError("No response choices returned")
        try:
            content = response_data['choices'][0]['message']['content']
        except (KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Malformed chat completion: {e}") from e
        if not isinstance(content, str):
            raise TransportError("Chat completion has no text content")
        return content

    def check_server_health(self) -> bool:
        try:
            response = self.session.get(f"{self.server_url}/v1/models", headers=self._headers(), timeout=10)
        except requests.exceptions.RequestException as e:
            print(f"❌ Could not connect to OpenAI-compatible server at {self.server_url}: {e}")
            return False

        if response.status_code != 200:
            print(f"❌ Server returned status {response.status_code}")
            return False
        print(f"✅ OpenAI-compatible server is running at {self.server_url}")
        return True


def create_vision_client(config: SorterConfig) -> VisionClient:
    """Pick and build the backend once, at startup."""
    if config.backend == "openai":
        return OpenAIVisionClient(config.openai_endpoint, config.model,
                                  api_key=config.openai_key, timeout=config.request_timeout)
    return OllamaVisionClient(config.ollama_url, config.model, timeout=config.request_timeout)
