"""Upstream chat completions client."""

import logging
import os
from typing import Any, AsyncIterator

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Opens one streaming Chat Completions turn per call to ``stream``."""

    def __init__(
        self,
        model_name: str = "gpt-4o",
        json_mode: bool = True,
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self._client = client
        self.api_key = api_key
        self.model_name = model_name
        self.json_mode = json_mode

    @property
    def client(self) -> AsyncOpenAI:
        # Created on first use so the app can start without credentials
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key or os.getenv("OPENAI_API_KEY"))
        return self._client

    async def stream(self, messages: list, tools: list) -> AsyncIterator[Any]:
        """Yield the chunks of one streaming turn.

        The HTTP response is closed when the caller stops iterating early.
        """
        create_args = {
            "model": self.model_name,
            "messages": messages,
            "stream": True,
        }
        if tools:
            create_args["tools"] = tools
            create_args["tool_choice"] = "auto"
        if self.json_mode:
            create_args["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**create_args)
        try:
            async for chunk in response:
                yield chunk
        finally:
            await response.close()
