"""Streaming activity sampler and two-sided comparator."""

from .comparator import Comparator, ComparatorConfig
from .sampler import Contender, Sampler, SamplerConfig, Side
from .scores import ScoreWindow
from .stream import StreamSource, WebSocketStreamConfig, WebSocketStreamSource, open_source
from .synthetic import SyntheticStreamConfig, SyntheticStreamSource
