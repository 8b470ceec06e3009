from .rand import RandomTools
from .timeparse import TimeTools

__all__ = ["RandomTools", "TimeTools"]
