"""
choreonet - The net model.
Indexes a NetDescription and answers graph, event and device queries.
"""

import logging
from typing import Dict, List, Mapping, Optional, Set, Tuple, Union

from . import enablement
from .exceptions import NotFoundError
from .executor import DEFAULT_MAX_CASCADE, PetriNetExecution
from .structures import (
    Arc, Device, DeviceEvents, Event, EventStatus, Marking, NetDescription,
    Node, NodeKind, Place, Transition,
)

logger = logging.getLogger("choreonet.net")


class PetriNet:
    """
    The net model: an immutable, indexed view over a NetDescription.

    Queries take the marking as an argument, so one PetriNet can be shared by
    any number of sessions each holding its own marking.
    """

    def __init__(self, description: NetDescription,
                 max_cascade: int = DEFAULT_MAX_CASCADE,
                 multiset: bool = False):
        self.description = description
        self.multiset = multiset

        self.places: Tuple[Place, ...] = description.places
        self.transitions: Tuple[Transition, ...] = description.transitions
        self.arcs: Tuple[Arc, ...] = description.arcs

        # Mapping tables
        self.id2place: Dict[str, Place] = {p.id: p for p in self.places}
        self.id2transition: Dict[str, Transition] = {t.id: t for t in self.transitions}
        self.events: List[Event] = []
        self.event2transition: Dict[str, Transition] = {}
        self._index_events()

        self._check_arcs()
        self._arcs_by_place: Dict[str, List[Arc]] = {}
        self._arcs_by_transition: Dict[str, List[Arc]] = {}
        for arc in self.arcs:
            self._arcs_by_place.setdefault(arc.place_id, []).append(arc)
            self._arcs_by_transition.setdefault(arc.transition_id, []).append(arc)

        self.devices: List[Device] = _collect_devices(description)
        self.instance2device: Dict[str, str] = {
            instance.id: device.id for device in self.devices for instance in device.instances
        }

        self.execution = PetriNetExecution(self, max_cascade)
        self.initial_marking = Marking(description.token_map())

        logger.debug(f"Built net {description.id}: {len(self.places)} places, "
                     f"{len(self.transitions)} transitions, {len(self.arcs)} arcs")

    def _index_events(self):
        for transition in self.transitions:
            for event in transition.events:
                if event.id in self.event2transition:
                    raise ValueError(f"Event {event.id} is attached to more than one transition")
                self.events.append(event)
                self.event2transition[event.id] = transition

    def _check_arcs(self):
        # Until flattened, arcs may also point at interfaces or child nodes
        place_ids, transition_ids = _node_ids(self.description)
        for arc in self.arcs:
            if arc.place_id not in place_ids:
                raise NotFoundError(f"{arc} references unknown place: {arc.place_id}")
            if arc.transition_id not in transition_ids:
                raise NotFoundError(f"{arc} references unknown transition: {arc.transition_id}")

    @property
    def id(self) -> str:
        return self.description.id

    @property
    def name(self) -> str:
        return self.description.name

    @property
    def max_cascade(self) -> int:
        return self.execution.max_cascade

    @property
    def nodes(self) -> List[Node]:
        return [*self.places, *self.transitions]

    # --- Graph queries ---

    def inputs(self, node: Node) -> List[Arc]:
        """All arcs flowing into the node."""
        if node.kind is NodeKind.PLACE:
            return [a for a in self._arcs_by_place.get(node.id, ()) if not a.from_place]
        if node.kind is NodeKind.TRANSITION:
            return [a for a in self._arcs_by_transition.get(node.id, ()) if a.from_place]
        raise TypeError(f"Unknown node kind: {node.kind!r}")

    def outputs(self, node: Node) -> List[Arc]:
        """All arcs flowing out of the node."""
        if node.kind is NodeKind.PLACE:
            return [a for a in self._arcs_by_place.get(node.id, ()) if a.from_place]
        if node.kind is NodeKind.TRANSITION:
            return [a for a in self._arcs_by_transition.get(node.id, ()) if not a.from_place]
        raise TypeError(f"Unknown node kind: {node.kind!r}")

    def transition_for_event(self, event_id: str) -> Transition:
        try:
            return self.event2transition[event_id]
        except KeyError:
            raise NotFoundError(f"No transition owns event: {event_id}") from None

    # --- Enablement ---

    def enabled_transitions(self, marking: Mapping) -> List[Transition]:
        return enablement.enabled_transitions(self, marking)

    def hot_transitions(self, marking: Mapping) -> List[Transition]:
        return enablement.hot_transitions(self, marking)

    def is_enabled(self, marking: Mapping, transition: Transition) -> bool:
        return enablement.is_enabled(self, marking, transition)

    def event_enabled(self, marking: Mapping, event_id: str) -> bool:
        return enablement.event_enabled(self, marking, event_id)

    def all_events(self, marking: Mapping) -> List[EventStatus]:
        enabled = {t.id for t in self.enabled_transitions(marking)}
        return [
            EventStatus(event, self.event2transition[event.id].id,
                        self.event2transition[event.id].id in enabled)
            for event in self.events
        ]

    def device_events(self, marking: Mapping) -> List[DeviceEvents]:
        """
        Events grouped by device. A device lists the events of the transitions
        declared in the same net as the device; devices without instances are
        skipped.
        """
        by_net: Dict[str, List[Tuple[Transition, Event]]] = {}
        for transition in _collect_transitions(self.description):
            for event in transition.events:
                by_net.setdefault(transition.net_id, []).append((transition, event))

        result = []
        for device in self.devices:
            if not device.instances:
                continue
            statuses = tuple(
                EventStatus(event, transition.id, self.event_enabled(marking, event.id))
                for transition, event in by_net.get(device.net_id, ())
            )
            result.append(DeviceEvents(device, statuses))
        return result

    def instance_of(self, instance_id: str) -> str:
        """Returns the id of the device owning the instance."""
        try:
            return self.instance2device[instance_id]
        except KeyError:
            raise NotFoundError(f"Unknown device instance: {instance_id}") from None

    def device_index_from_id(self, device_id: str) -> int:
        return next((i for i, d in enumerate(self.devices) if d.id == device_id), -1)

    def bound_violations(self, marking: Mapping) -> List[Place]:
        """Places holding more tokens than their declared bound. Bounds are not enforced."""
        return [p for p in self.places if marking.get(p.id, 0) > p.bound]

    # --- Execution ---

    def fire(self, marking: Mapping, transition: Union[Transition, str]) -> Marking:
        return self.execution.fire(marking, transition)

    def fire_event(self, marking: Mapping, event_id: str) -> Marking:
        return self.execution.fire_event(marking, event_id)

    def handle_event(self, marking: Mapping, event_id: str) -> Marking:
        return self.execution.handle_event(marking, event_id)

    def settle(self, marking: Mapping) -> Marking:
        return self.execution.settle(marking)

    # --- Composition & export ---

    def combined_net(self) -> "PetriNet":
        """Flattens children and interfaces into a new, directly executable net."""
        from .composer import combine
        return combine(self)

    def to_diagram(self, place_size: float = 0.4, color_profile="default",
                   marking: Optional[Mapping] = None) -> str:
        """DOT text of the net, colored by the given marking."""
        from .viewer import PetriNetViewer
        viewer = PetriNetViewer(self, marking=marking, color_profile=color_profile,
                                place_size=place_size)
        return viewer.to_diagram()

    def __str__(self) -> str:
        header = "-" * 37
        lines = [header, "Places:", *(f"{p}: bound {p.bound}" for p in self.places)]
        lines += ["Transitions:", *(f"{t}: {[e.name for e in t.events]}" for t in self.transitions)]
        lines += ["Arcs:", *(str(a) for a in self.arcs)]
        lines.append(header)
        return "\n".join(lines)


def _collect_devices(description: NetDescription) -> List[Device]:
    devices = list(description.devices)
    for child in description.children:
        devices.extend(_collect_devices(child))
    return devices


def _node_ids(description: NetDescription) -> Tuple[Set[str], Set[str]]:
    places = {p.id for p in description.places} | {i.id for i in description.place_interfaces}
    transitions = {t.id for t in description.transitions} | {i.id for i in description.transition_interfaces}
    for child in description.children:
        child_places, child_transitions = _node_ids(child)
        places |= child_places
        transitions |= child_transitions
    return places, transitions


def _collect_transitions(description: NetDescription) -> List[Transition]:
    transitions = list(description.transitions)
    for child in description.children:
        transitions.extend(_collect_transitions(child))
    return transitions
