import logging
import random
from typing import Literal

logger = logging.getLogger(__name__)


class WeatherPlugin:
    """Plugin providing a simulated weather lookup."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def get_weather(
        self, location: str, unit: Literal["celsius", "fahrenheit"] = "celsius"
    ) -> dict:
        """Get the current weather in a given location

        Parameters
        ----------
        location : str
            The city and state, e.g. San Francisco, CA
        unit : str, optional
            The unit of temperature
        """
        # Simulated reading until a real weather API is wired in
        temperature = self.rng.randint(10, 39)
        logger.info(f"WEATHER: {location} -> {temperature} {unit}")
        return {
            "location": location,
            "temperature": temperature,
            "unit": unit or "celsius",
            "condition": "sunny",
        }

    def hook_provide_tools(self):
        return [self.get_weather]
