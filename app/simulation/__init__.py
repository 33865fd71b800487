from .connectivity import AmbiguousGround, SynthesisError, resolve_nets
from .netlist_generator import FloatingPin, NetlistGenerator, SynthesisResult
from .ngspice_runner import NgspiceRunner
from .result_parser import ResultParser

__all__ = [
    'AmbiguousGround',
    'FloatingPin',
    'NetlistGenerator',
    'NgspiceRunner',
    'ResultParser',
    'SynthesisError',
    'SynthesisResult',
    'resolve_nets',
]
