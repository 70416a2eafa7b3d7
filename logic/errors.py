class CallFlowError(Exception):
    """Base class for call-flow analysis failures."""


class DataIntegrityError(CallFlowError):
    """A step reference points to a key that does not exist in the flow."""


class EmptyGraphError(CallFlowError):
    """The flow has no steps to walk."""


class AnalysisRequestError(CallFlowError, ValueError):
    """The drop analysis input is incomplete or out of range."""


class AnalysisProviderError(CallFlowError):
    """The text-generation provider failed or returned nothing usable."""


class LLMError(CallFlowError):
    """The LLM endpoint could not be reached or its reply could not be read."""
