"""
Language model runner for Pagewright.

This module handles communication with Ollama: it sends a system prompt and a
user prompt and returns the raw response text.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..config import config
from ..exceptions import LLMResponseError, LLMTimeoutError, LLMTransportError


class AgentRunner:
    """
    Manages communication with Ollama.
    """

    def __init__(
        self,
        ollama_host: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None
    ):
        """
        Initialize the agent runner.

        Args:
            ollama_host: The Ollama server URL (defaults to config value)
            model: The model name to use for inference (defaults to config value)
            timeout: Request timeout in seconds (defaults to config value)
            client: Optional preconfigured httpx client
        """
        self.ollama_host = (ollama_host or config.ollama_host).rstrip("/")
        self.model = model or config.model_name
        self.timeout = timeout or config.ollama_timeout
        self.client = client or httpx.Client(timeout=self.timeout)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self) -> None:
        self.client.close()

    def build_payload(self, prompt: str, system_prompt: str = "") -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": config.temperature,
                "num_predict": config.max_tokens
            }
        }
        if system_prompt:
            payload["system"] = system_prompt
        return payload

    def generate(self, prompt: str, system_prompt: str = "", timeout: Optional[float] = None) -> str:
        """
        Send a prompt to Ollama and return the response text.

        Args:
            prompt: The user prompt
            system_prompt: Optional system prompt
            timeout: Per-request timeout overriding the client default

        Returns:
            The model's response text

        Raises:
            LLMTimeoutError: If the request timed out
            LLMTransportError: If Ollama could not be reached or returned an error status
            LLMResponseError: If the response body has an unexpected shape
        """
        start_time = time.time()
        request_options = {"timeout": timeout} if timeout else {}

        try:
            response = self.client.post(
                f"{self.ollama_host}/api/generate",
                json=self.build_payload(prompt, system_prompt),
                **request_options
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"Ollama request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise LLMTransportError(f"Ollama request failed: {e}") from e
        except httpx.RequestError as e:
            raise LLMTransportError(f"Failed to connect to Ollama: {e}") from e

        try:
            result = response.json()
        except ValueError as e:
            raise LLMResponseError(f"Ollama returned a non-JSON body: {e}") from e

        if not isinstance(result, dict) or not isinstance(result.get("response"), str):
            raise LLMResponseError("Ollama response has no 'response' text")

        elapsed_ms = int((time.time() - start_time) * 1000)
        logging.debug(f"Ollama answered in {elapsed_ms} ms ({len(result['response'])} characters)")
        return result["response"]
