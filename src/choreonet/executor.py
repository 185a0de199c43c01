"""
choreonet - Execution engine for device choreography nets.
Applies transitions and events to markings and cascades silent transitions.
"""

import logging
from collections import Counter
from typing import TYPE_CHECKING, Mapping, Union

from .enablement import event_enabled, hot_transitions, is_enabled, is_fireable
from .exceptions import CascadeOverflow, NotEnabledError, NotFoundError
from .structures import Marking, Transition

if TYPE_CHECKING:
    from .net import PetriNet

logger = logging.getLogger("choreonet.executor")

DEFAULT_MAX_CASCADE = 1000


class PetriNetExecution:
    """
    Handles the execution cycle of a net:
    1. Event check: a disabled event leaves the marking untouched.
    2. Firing: the transition owning the event consumes and produces tokens.
    3. Cascade: silent transitions fire until none can.

    Markings passed in are never modified; every call returns a new Marking.
    """

    def __init__(self, net: "PetriNet", max_cascade: int = DEFAULT_MAX_CASCADE):
        if max_cascade < 0:
            raise ValueError("max_cascade must be non-negative")
        self.net = net
        self.max_cascade = max_cascade

    def _resolve(self, transition: Union[Transition, str]) -> Transition:
        transition_id = transition if isinstance(transition, str) else transition.id
        found = self.net.id2transition.get(transition_id)
        if found is None or (not isinstance(transition, str) and found != transition):
            raise NotFoundError(f"Transition does not exist: {transition_id}")
        return found

    def fire(self, marking: Mapping, transition: Union[Transition, str]) -> Marking:
        """Consumes one token per input arc and produces one per output arc."""
        transition = self._resolve(transition)
        if not is_enabled(self.net, marking, transition):
            raise NotEnabledError(f"Transition is not enabled: {transition}")

        deltas = Counter()
        for arc in self.net.inputs(transition):
            deltas[arc.place_id] -= 1
        for arc in self.net.outputs(transition):
            deltas[arc.place_id] += 1

        for place_id, delta in deltas.items():
            if marking.get(place_id, 0) + delta < 0:
                raise NotEnabledError(
                    f"Transition {transition} needs more tokens in place {place_id}")

        logger.debug(f"Firing transition: {transition.id} ({transition.name})")
        return Marking(marking).updated(deltas)

    def fire_event(self, marking: Mapping, event_id: str) -> Marking:
        transition = self.net.event2transition.get(event_id)
        if transition is None:
            raise NotFoundError(f"No transition owns event: {event_id}")
        return self.fire(marking, transition)

    def _runnable(self, marking: Marking):
        # Hot transitions whose repeated input arcs ask for more tokens than
        # their place holds stay hot but are never fired automatically
        return [t for t in hot_transitions(self.net, marking) if is_fireable(self.net, marking, t)]

    def settle(self, marking: Mapping) -> Marking:
        """Fires hot transitions, first in declaration order, until none can fire."""
        marking = Marking(marking)
        for _ in range(self.max_cascade):
            runnable = self._runnable(marking)
            if not runnable:
                return marking
            marking = self.fire(marking, runnable[0])

        if self._runnable(marking):
            logger.error(f"Cascade overflow after {self.max_cascade} firings at {marking.to_dict()}")
            raise CascadeOverflow(self.max_cascade, marking)
        return marking

    def handle_event(self, marking: Mapping, event_id: str) -> Marking:
        """
        Fires the event and keeps firing hot transitions until none can fire.
        A disabled or unknown event returns an unchanged copy of the marking,
        and so does an event whose transition cannot consume its inputs.
        """
        marking = Marking(marking)
        logger.info(f"Handling event: {event_id} with marking: {marking.to_dict()}")

        if not event_enabled(self.net, marking, event_id):
            logger.info(f"Event: {event_id} is not enabled")
            return marking

        transition = self.net.event2transition[event_id]
        if not is_fireable(self.net, marking, transition):
            logger.warning(f"Event: {event_id} is enabled but {transition.id} lacks tokens for its input arcs")
            return marking

        marking = self.settle(self.fire_event(marking, event_id))
        logger.info(f"Handled event: {event_id} with marking: {marking.to_dict()}")
        return marking
