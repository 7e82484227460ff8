"""midstream: named properties guarded by async middleware chains."""

from importlib.metadata import version as _version

__version__ = _version("midstream")

from midstream.errors import ChainError, ConfigurationError, MidstreamError, UnknownPropertyError
from midstream.chain import run_chain
from midstream.sink import Sink, KeyedSink, CallbackSink, as_sink
from midstream.settle import Settlement, settle_all, FULFILLED, REJECTED
from midstream.source import Source, Hook
from midstream.naming import camel_case, setter_name
from midstream.export import Midstream, create_source
# textual NOT auto-imported — opt-in only

__all__ = [
    "create_source",
    "Midstream",
    "Source",
    "Hook",
    "run_chain",
    "Sink",
    "KeyedSink",
    "CallbackSink",
    "as_sink",
    "Settlement",
    "settle_all",
    "FULFILLED",
    "REJECTED",
    "camel_case",
    "setter_name",
    "MidstreamError",
    "ConfigurationError",
    "ChainError",
    "UnknownPropertyError",
]
