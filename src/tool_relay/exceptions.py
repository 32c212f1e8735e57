"""Exception hierarchy for the relay.

Tool faults never appear here: they are converted into tool results and
handed back to the model. These exceptions terminate a request.
"""


class ToolRelayError(Exception):
    """Base exception for all relay errors."""


class IterationLimitError(ToolRelayError):
    """The model kept requesting tools past the configured turn budget."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__("Maximum tool call iterations reached")


class UpstreamError(ToolRelayError):
    """The upstream chat completions stream failed."""


class ChannelClosedError(ToolRelayError):
    """The outbound event channel no longer accepts units."""
