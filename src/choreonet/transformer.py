"""
choreonet - Net loaders.
Compiles .net sources with lark and reads the persistence layer's JSON shape.
"""

import json
import logging
import pathlib
from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, List, Optional, Tuple

from lark import Lark, Transformer

from .structures import (
    Arc, Device, Event, Field, Instance, NetDescription, Place, PlaceInterface,
    Transition, TransitionInterface,
)

logger = logging.getLogger("choreonet.transformer")


def _text(token) -> Optional[str]:
    return str(token)[1:-1] if token is not None else None


@dataclass
class _NetDraft:
    """A parsed net block whose node ids are not yet qualified."""
    name: str
    label: Optional[str]
    statements: List[Tuple[str, Dict[str, Any]]] = dc_field(default_factory=list)


class NetTransformer(Transformer):
    """Turns the parse tree of a .net file into a NetDescription."""

    # --- leaves ---

    def bound(self, items):
        return int(items[0])

    def tokens(self, items):
        return int(items[0])

    def field(self, items):
        return Field(str(items[0]), str(items[1]))

    def fields(self, items):
        return tuple(items)

    def event(self, items):
        name, label, fields = items
        return str(name), _text(label) or str(name), fields or ()

    def events(self, items):
        return list(items)

    def ref(self, items):
        return ".".join(str(i) for i in items)

    def members(self, items):
        return list(items)

    def address(self, items):
        return _text(items[0])

    def instance(self, items):
        name, label, addr = items
        return str(name), _text(label) or str(name), addr or ""

    # --- statements ---

    def place(self, items):
        name, label, bound, tokens = items
        return "place", {"name": str(name), "label": _text(label) or str(name),
                         "bound": 1 if bound is None else bound, "tokens": tokens or 0}

    def transition(self, items):
        name, label, events = items
        return "transition", {"name": str(name), "label": _text(label) or str(name),
                              "events": events or []}

    def arc(self, items):
        return "arc", {"source": str(items[0]), "target": str(items[1])}

    def device(self, items):
        name, label, *instances = items
        return "device", {"name": str(name), "label": _text(label) or str(name), "instances": instances}

    def place_interface(self, items):
        name, label, bound, tokens, members = items
        return "place_interface", {"name": str(name), "label": _text(label) or str(name),
                                   "bound": 1 if bound is None else bound,
                                   "tokens": tokens or 0, "members": members}

    def transition_interface(self, items):
        name, label, events, members = items
        return "transition_interface", {"name": str(name), "label": _text(label) or str(name),
                                        "events": events or [], "members": members}

    def net(self, items):
        name, label, *statements = items
        draft = _NetDraft(str(name), _text(label), [])
        for statement in statements:
            if isinstance(statement, _NetDraft):
                draft.statements.append(("net", {"draft": statement}))
            else:
                draft.statements.append(statement)
        return draft

    def start(self, items):
        desc = self._build(items[0], prefix="", net_id=items[0].name)
        logger.info(f"[Summary] Net {desc.id} built: {len(desc.places)} places, "
                    f"{len(desc.transitions)} transitions, {len(desc.children)} children")
        return desc

    # --- resolution ---

    def _build(self, draft: _NetDraft, prefix: str, net_id: str) -> NetDescription:
        by_kind: Dict[str, List[Dict[str, Any]]] = {}
        for kind, data in draft.statements:
            by_kind.setdefault(kind, []).append(data)

        place_names = [d["name"] for d in by_kind.get("place", []) + by_kind.get("place_interface", [])]
        transition_names = [d["name"] for d in by_kind.get("transition", []) +
                            by_kind.get("transition_interface", [])]
        names = place_names + transition_names
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Net {net_id} declares {', '.join(duplicates)} more than once")

        def events(items):
            return tuple(Event(prefix + name, label, fields) for name, label, fields in items)

        places = tuple(Place(prefix + d["name"], d["label"], d["bound"]) for d in by_kind.get("place", []))
        transitions = tuple(Transition(prefix + d["name"], d["label"], events(d["events"]))
                            for d in by_kind.get("transition", []))

        arcs = []
        for d in by_kind.get("arc", []):
            source, target = d["source"], d["target"]
            if source in place_names and target in transition_names:
                arcs.append(Arc(prefix + source, prefix + target, True))
            elif source in transition_names and target in place_names:
                arcs.append(Arc(prefix + target, prefix + source, False))
            else:
                raise ValueError(f"Arc {source} -> {target} in net {net_id} must join a place and a transition")
            logger.debug(f"  {source} -> {target}")

        devices = tuple(
            Device(prefix + d["name"], d["label"],
                   tuple(Instance(prefix + name, label, addr) for name, label, addr in d["instances"]))
            for d in by_kind.get("device", [])
        )

        children = tuple(
            self._build(d["draft"], f"{prefix}{d['draft'].name}.", prefix + d["draft"].name)
            for d in by_kind.get("net", [])
        )

        place_interfaces = tuple(
            PlaceInterface(prefix + d["name"], d["label"], tuple(prefix + m for m in d["members"]),
                           bound=d["bound"], initial_tokens=d["tokens"])
            for d in by_kind.get("place_interface", [])
        )
        transition_interfaces = tuple(
            TransitionInterface(prefix + d["name"], d["label"], tuple(prefix + m for m in d["members"]),
                                events=events(d["events"]))
            for d in by_kind.get("transition_interface", [])
        )

        return NetDescription(
            id=net_id,
            name=draft.label or draft.name,
            places=places,
            transitions=transitions,
            arcs=tuple(arcs),
            initial_marking=[d["tokens"] for d in by_kind.get("place", [])],
            children=children,
            place_interfaces=place_interfaces,
            transition_interfaces=transition_interfaces,
            devices=devices,
        )


def get_parser():
    grammar_path = pathlib.Path(__file__).parent / "net.lark"
    with open(grammar_path, "r", encoding="utf-8") as f:
        return Lark(f.read(), start='start', parser='earley')


def parse_string(code: str):
    parser = get_parser()
    try:
        tree = parser.parse(code)
        desc = NetTransformer().transform(tree)
        return desc, []
    except Exception as e:
        logger.error(f"Transformation failed: {e}")
        return None, [str(e)]


def compile_string(code: str) -> NetDescription:
    """
    Reads a string containing net source and returns the NetDescription
    """
    desc, errors = parse_string(code)

    if errors:
        raise ValueError(f"Parsing errors: {', '.join(errors)}")
    return desc


def compile_file(filepath: str) -> NetDescription:
    """
    Reads a .net or .json file and returns its NetDescription
    """
    path = pathlib.Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    if path.suffix.lower() == ".json":
        return load_json(path)

    with open(path, 'r', encoding='utf-8') as f:
        code = f.read()

    return compile_string(code)


# --- JSON descriptions ---

def _member_ids(items) -> Tuple[str, ...]:
    return tuple(str(i["id"]) if isinstance(i, dict) else str(i) for i in items or ())


def _events_from(items) -> Tuple[Event, ...]:
    return tuple(
        Event(str(e["id"]), e.get("name", str(e["id"])),
              tuple(Field(f["name"], f.get("type", "string")) for f in e.get("fields") or ()))
        for e in items or ()
    )


def _device_from(data: Dict[str, Any], default_id: str) -> Device:
    return Device(
        str(data.get("id", default_id)),
        data.get("name", ""),
        tuple(Instance(str(i["id"]), i.get("name", ""), i.get("addr", ""))
              for i in data.get("instances") or ()),
    )


def from_dict(data: Dict[str, Any]) -> NetDescription:
    """Builds a NetDescription from the persistence layer's JSON shape."""
    net_id = str(data["id"])

    devices = [_device_from(d, net_id) for d in data.get("devices") or ()]
    if data.get("device"):
        devices.insert(0, _device_from(data["device"], net_id))

    return NetDescription(
        id=net_id,
        name=data.get("name", net_id),
        description=data.get("description") or "",
        places=tuple(Place(str(p["id"]), p.get("name", str(p["id"])), p.get("bound", 1))
                     for p in data.get("places") or ()),
        transitions=tuple(Transition(str(t["id"]), t.get("name", str(t["id"])), _events_from(t.get("events")))
                          for t in data.get("transitions") or ()),
        arcs=tuple(Arc(str(a["placeID"]), str(a["transitionID"]), bool(a["fromPlace"]))
                   for a in data.get("arcs") or ()),
        initial_marking=data.get("initialMarking") or (),
        children=tuple(from_dict(c) for c in data.get("children") or ()),
        place_interfaces=tuple(
            PlaceInterface(str(i["id"]), i.get("name", str(i["id"])),
                           _member_ids(i.get("places", i.get("members"))),
                           bound=i.get("bound", 1), initial_tokens=i.get("initialTokens", 0))
            for i in data.get("placeInterfaces") or ()
        ),
        transition_interfaces=tuple(
            TransitionInterface(str(i["id"]), i.get("name", str(i["id"])),
                                _member_ids(i.get("transitions", i.get("members"))),
                                events=_events_from(i.get("events")))
            for i in data.get("transitionInterfaces") or ()
        ),
        devices=tuple(devices),
    )


def load_json(filepath) -> NetDescription:
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)
    desc = from_dict(data)
    logger.info(f"Loaded net {desc.id} from {filepath}")
    return desc
