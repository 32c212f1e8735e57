import os
from typing import NamedTuple

from dotenv import load_dotenv

from .agent import DEFAULT_MAX_ITERATIONS

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Always respond with structured JSON when possible."
)

_FALSE_VALUES = {"0", "false", "no", "off"}


class Settings(NamedTuple):
    """Process configuration, read from the environment (and ``.env``)."""

    openai_api_key: str | None = None
    model_name: str = "gpt-4o"
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    json_mode: bool = True

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            model_name=os.getenv("TOOL_RELAY_MODEL", "gpt-4o"),
            max_iterations=int(
                os.getenv("TOOL_RELAY_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS)
            ),
            system_prompt=os.getenv("TOOL_RELAY_SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT),
            json_mode=os.getenv("TOOL_RELAY_JSON_MODE", "1").lower() not in _FALSE_VALUES,
        )
