"""
choreonet - Core data model.
Nodes, arcs, devices, markings and the net descriptions built from them.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union


class NodeKind(Enum):
    """Discriminates the two node kinds of the bipartite graph."""
    PLACE = "place"
    TRANSITION = "transition"


@dataclass(frozen=True)
class Field:
    """A named, typed input carried by an event (e.g. a volume to dispense)."""
    name: str
    type: str = "string"


@dataclass(frozen=True)
class Event:
    """The externally triggerable unit attached to exactly one transition."""
    id: str
    name: str
    fields: Tuple[Field, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))


@dataclass(frozen=True)
class Place:
    """A container for tokens. `bound` is the declared capacity."""
    id: str
    name: str
    bound: int = 1
    net_id: Optional[str] = None

    @property
    def kind(self) -> NodeKind:
        return NodeKind.PLACE

    def __str__(self) -> str:
        return f"{self.id} ({self.name})"


@dataclass(frozen=True)
class Transition:
    """A transformation unit. Without events it is silent and fires on its own."""
    id: str
    name: str
    events: Tuple[Event, ...] = ()
    net_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "events", tuple(self.events))

    @property
    def kind(self) -> NodeKind:
        return NodeKind.TRANSITION

    @property
    def is_silent(self) -> bool:
        return not self.events

    def __str__(self) -> str:
        return f"{self.id} ({self.name})"


Node = Union[Place, Transition]


@dataclass(frozen=True)
class Arc:
    """Connects a place and a transition; `from_place` gives the direction."""
    place_id: str
    transition_id: str
    from_place: bool

    def __str__(self) -> str:
        if self.from_place:
            return f"Arc({self.place_id} -> {self.transition_id})"
        return f"Arc({self.transition_id} -> {self.place_id})"


@dataclass(frozen=True)
class Instance:
    """A physical unit of a device, addressed by the messaging layer."""
    id: str
    name: str
    addr: str = ""


@dataclass(frozen=True)
class Device:
    id: str
    name: str
    instances: Tuple[Instance, ...] = ()
    net_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "instances", tuple(self.instances))


@dataclass(frozen=True)
class PlaceInterface:
    """Merges several child places into one aggregate place when flattening."""
    id: str
    name: str
    members: Tuple[str, ...] = ()
    bound: int = 1
    initial_tokens: int = 0

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))


@dataclass(frozen=True)
class TransitionInterface:
    """Merges several child transitions into one aggregate transition."""
    id: str
    name: str
    members: Tuple[str, ...] = ()
    events: Tuple[Event, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "members", tuple(self.members))
        object.__setattr__(self, "events", tuple(self.events))


@dataclass(frozen=True)
class InitialTokens:
    place_id: str
    tokens: int


class Marking(Mapping):
    """
    Immutable token counts keyed by place id.

    Places absent from the mapping hold no tokens. Operations that change the
    state return a new Marking, so callers may keep every marking they have
    seen as an append-only history.
    """

    __slots__ = ("_tokens",)

    def __init__(self, tokens: Union[Mapping, Iterable[Tuple[str, int]], None] = None):
        data = dict(tokens or {})
        for place_id, count in data.items():
            if not isinstance(count, int) or count < 0:
                raise ValueError(f"Invalid token count {count!r} for place {place_id}")
        self._tokens: Dict[str, int] = data

    def __getitem__(self, place_id: str) -> int:
        return self._tokens[place_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __hash__(self) -> int:
        return hash(frozenset(self._tokens.items()))

    def __repr__(self) -> str:
        return f"Marking({self._tokens!r})"

    def tokens(self, place_id: str) -> int:
        return self._tokens.get(place_id, 0)

    def updated(self, deltas: Mapping) -> "Marking":
        """Returns a new marking with `deltas` added to the current counts."""
        data = dict(self._tokens)
        for place_id, delta in deltas.items():
            data[place_id] = data.get(place_id, 0) + delta
        return Marking(data)

    def to_dict(self) -> Dict[str, int]:
        return dict(self._tokens)


@dataclass(frozen=True)
class NetDescription:
    """
    A fully hydrated net as supplied by the persistence layer.

    `initial_marking` is stored as explicit (place id, tokens) pairs. It may be
    given positionally (one count per entry of `places`, same order), as a
    mapping, or as InitialTokens pairs.
    """
    id: str
    name: str
    places: Tuple[Place, ...] = ()
    transitions: Tuple[Transition, ...] = ()
    arcs: Tuple[Arc, ...] = ()
    initial_marking: Tuple[InitialTokens, ...] = ()
    children: Tuple["NetDescription", ...] = ()
    place_interfaces: Tuple[PlaceInterface, ...] = ()
    transition_interfaces: Tuple[TransitionInterface, ...] = ()
    devices: Tuple[Device, ...] = ()
    description: str = ""

    def __post_init__(self):
        places = tuple(_stamp(p, self.id) for p in self.places)
        transitions = tuple(_stamp(t, self.id) for t in self.transitions)
        _check_unique("place", places)
        _check_unique("transition", transitions)

        object.__setattr__(self, "places", places)
        object.__setattr__(self, "transitions", transitions)
        object.__setattr__(self, "arcs", tuple(self.arcs))
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "place_interfaces", tuple(self.place_interfaces))
        object.__setattr__(self, "transition_interfaces", tuple(self.transition_interfaces))
        object.__setattr__(self, "devices", tuple(_stamp(d, self.id) for d in self.devices))
        object.__setattr__(self, "initial_marking", _align_marking(self.initial_marking, places))

    @property
    def is_hierarchical(self) -> bool:
        return bool(self.children or self.place_interfaces or self.transition_interfaces)

    def token_map(self) -> Dict[str, int]:
        return {pair.place_id: pair.tokens for pair in self.initial_marking}

    def positional_marking(self) -> List[int]:
        """The initial marking as one count per place, in place order."""
        return [pair.tokens for pair in self.initial_marking]


@dataclass(frozen=True)
class EventStatus:
    """An event together with whether the marking currently permits it."""
    event: Event
    transition_id: str
    enabled: bool

    @property
    def id(self) -> str:
        return self.event.id

    @property
    def name(self) -> str:
        return self.event.name


@dataclass(frozen=True)
class DeviceEvents:
    device: Device
    events: Tuple[EventStatus, ...] = field(default_factory=tuple)


def _stamp(item, net_id: str):
    """Records the owning net on nodes and devices that do not carry one yet."""
    return item if item.net_id is not None else replace(item, net_id=net_id)


def _check_unique(kind: str, nodes: Sequence[Node]):
    seen = set()
    for node in nodes:
        if node.id in seen:
            raise ValueError(f"Duplicate {kind} id: {node.id}")
        seen.add(node.id)


def _align_marking(marking, places: Sequence[Place]) -> Tuple[InitialTokens, ...]:
    place_ids = [p.id for p in places]

    if isinstance(marking, Mapping):
        lookup = dict(marking)
    else:
        items = list(marking or ())
        if items and all(isinstance(i, InitialTokens) for i in items):
            lookup = {i.place_id: i.tokens for i in items}
        elif not items:
            lookup = {}
        else:
            if len(items) != len(place_ids):
                raise ValueError(
                    f"Initial marking has {len(items)} entries for {len(place_ids)} places")
            lookup = dict(zip(place_ids, items))

    unknown = set(lookup) - set(place_ids)
    if unknown:
        raise ValueError(f"Initial marking references unknown places: {sorted(unknown)}")

    pairs = []
    for place_id in place_ids:
        tokens = lookup.get(place_id, 0)
        if not isinstance(tokens, int) or tokens < 0:
            raise ValueError(f"Invalid initial token count {tokens!r} for place {place_id}")
        pairs.append(InitialTokens(place_id, tokens))
    return tuple(pairs)
