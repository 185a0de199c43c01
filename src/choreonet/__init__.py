# Re-exporting from transformer.py
from .transformer import compile_file, compile_string, parse_string, from_dict, load_json

# Re-exporting core structures
from .structures import (
    NodeKind, Field, Event, Place, Transition, Arc, Instance, Device,
    PlaceInterface, TransitionInterface, InitialTokens, Marking, NetDescription,
    EventStatus, DeviceEvents,
)
from .exceptions import (
    PetriNetError, NotEnabledError, NotFoundError, CompositionError, CascadeOverflow
)

# Re-exporting the net model and engines
from .net import PetriNet
from .executor import PetriNetExecution
from .composer import combine, flatten
from .simulator import RunSession, initial_net

# Re-exporting visualization
from .viewer import PetriNetViewer, ColorProfile, COLOR_PROFILES

__all__ = [
    'compile_file',
    'compile_string',
    'parse_string',
    'from_dict',
    'load_json',
    'NodeKind',
    'Field',
    'Event',
    'Place',
    'Transition',
    'Arc',
    'Instance',
    'Device',
    'PlaceInterface',
    'TransitionInterface',
    'InitialTokens',
    'Marking',
    'NetDescription',
    'EventStatus',
    'DeviceEvents',
    'PetriNetError',
    'NotEnabledError',
    'NotFoundError',
    'CompositionError',
    'CascadeOverflow',
    'PetriNet',
    'PetriNetExecution',
    'combine',
    'flatten',
    'RunSession',
    'initial_net',
    'PetriNetViewer',
    'ColorProfile',
    'COLOR_PROFILES',
]
