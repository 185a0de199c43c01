"""
choreonet - Enablement queries.
Pure functions over (net, marking) answering "what can happen now".
"""

from collections import Counter
from typing import TYPE_CHECKING, List, Mapping

from .structures import Transition

if TYPE_CHECKING:
    from .net import PetriNet


def is_enabled(net: "PetriNet", marking: Mapping, transition: Transition) -> bool:
    """
    A transition is enabled when each of its input arcs finds a token.

    By default every arc is checked on its own (two arcs from the same place
    both pass on a single token). Nets built with `multiset=True` require a
    place to hold one token per arc drawing from it.
    """
    if net.multiset:
        return is_fireable(net, marking, transition)
    return all(marking.get(arc.place_id, 0) > 0 for arc in net.inputs(transition))


def is_fireable(net: "PetriNet", marking: Mapping, transition: Transition) -> bool:
    """
    Whether firing leaves no place below zero: a place must hold one token
    per input arc drawing from it. Under `multiset=True` this is the same as
    being enabled.
    """
    demand = Counter(arc.place_id for arc in net.inputs(transition))
    return all(marking.get(place_id, 0) >= n for place_id, n in demand.items())


def enabled_transitions(net: "PetriNet", marking: Mapping) -> List[Transition]:
    """Enabled transitions, in declaration order."""
    return [t for t in net.transitions if is_enabled(net, marking, t)]


def hot_transitions(net: "PetriNet", marking: Mapping) -> List[Transition]:
    """Enabled transitions without events; these fire immediately."""
    return [t for t in enabled_transitions(net, marking) if t.is_silent]


def event_enabled(net: "PetriNet", marking: Mapping, event_id: str) -> bool:
    transition = net.event2transition.get(event_id)
    if transition is None:
        return False
    return is_enabled(net, marking, transition)
