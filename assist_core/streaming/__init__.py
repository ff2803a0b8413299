"""流式输出的分流（交付 + 聚合落库）。"""

from .tee import ResponseTee, TeeState, TeeStream

__all__ = ["ResponseTee", "TeeState", "TeeStream"]
