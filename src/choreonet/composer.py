"""
choreonet - Net composition.
Compiles a hierarchical net (parent, children and interfaces) into one flat net.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Set

from .exceptions import CompositionError
from .structures import Arc, InitialTokens, NetDescription, Place, Transition

if TYPE_CHECKING:
    from .net import PetriNet

logger = logging.getLogger("choreonet.composer")


def combine(net: "PetriNet") -> "PetriNet":
    """Returns a new flat PetriNet; `net` and its description are left untouched."""
    from .net import PetriNet
    flat = flatten(net.description)
    return PetriNet(flat, max_cascade=net.max_cascade, multiset=net.multiset)


def flatten(parent: NetDescription) -> NetDescription:
    """
    Flattens a NetDescription one level, after flattening each child in turn.

    Interface members are dropped and replaced by one aggregate node per
    interface; arcs touching a member are redirected to its aggregate.
    """
    children = [flatten(child) if child.is_hierarchical else child for child in parent.children]

    place_alias = _alias_members(parent.place_interfaces, {p.id for c in children for p in c.places}, "place")
    transition_alias = _alias_members(
        parent.transition_interfaces, {t.id for c in children for t in c.transitions}, "transition")

    places: List[Place] = [p for p in _chain(parent, children, "places") if p.id not in place_alias]
    transitions: List[Transition] = [
        t for t in _chain(parent, children, "transitions") if t.id not in transition_alias]

    places += [Place(i.id, i.name, i.bound, net_id=parent.id) for i in parent.place_interfaces]
    transitions += [Transition(i.id, i.name, i.events, net_id=parent.id)
                    for i in parent.transition_interfaces]

    arcs = [
        Arc(place_alias.get(a.place_id, a.place_id),
            transition_alias.get(a.transition_id, a.transition_id),
            a.from_place)
        for a in _chain(parent, children, "arcs")
    ]
    _check_arcs(parent.id, arcs, {p.id for p in places}, {t.id for t in transitions})

    tokens: Dict[str, int] = dict(parent.token_map())
    for child in children:
        tokens.update(child.token_map())
    for interface in parent.place_interfaces:
        tokens[interface.id] = interface.initial_tokens

    devices = list(parent.devices)
    for child in children:
        devices.extend(child.devices)

    logger.info(f"Flattened net {parent.id}: {len(children)} children, "
                f"{len(place_alias)} places and {len(transition_alias)} transitions merged")

    return NetDescription(
        id=parent.id,
        name=parent.name,
        description=parent.description,
        places=tuple(places),
        transitions=tuple(transitions),
        arcs=tuple(arcs),
        initial_marking=tuple(InitialTokens(p.id, tokens.get(p.id, 0)) for p in places),
        devices=tuple(devices),
    )


def _chain(parent: NetDescription, children: Iterable[NetDescription], attr: str) -> List:
    items = list(getattr(parent, attr))
    for child in children:
        items.extend(getattr(child, attr))
    return items


def _check_arcs(net_id: str, arcs: Iterable[Arc], place_ids: Set[str], transition_ids: Set[str]):
    for arc in arcs:
        if arc.place_id not in place_ids:
            raise CompositionError(f"Flattened net {net_id}: {arc} references unknown place: {arc.place_id}")
        if arc.transition_id not in transition_ids:
            raise CompositionError(
                f"Flattened net {net_id}: {arc} references unknown transition: {arc.transition_id}")


def _alias_members(interfaces, known: Set[str], kind: str) -> Dict[str, str]:
    """Maps each member id to the id of the interface absorbing it."""
    alias: Dict[str, str] = {}
    for interface in interfaces:
        for member in interface.members:
            if member not in known:
                raise CompositionError(
                    f"{kind.capitalize()} interface {interface.id} references unknown {kind}: {member}")
            if member in alias:
                raise CompositionError(
                    f"{kind.capitalize()} {member} is merged by both {alias[member]} and {interface.id}")
            alias[member] = interface.id
    return alias
