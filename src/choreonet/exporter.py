"""
choreonet - Text exports of a net.
Graphviz DOT and Mermaid diagrams, and the persistence layer's JSON shape.
"""

import json
from typing import Any, Dict, Mapping, Optional

from .structures import Device, Event, NetDescription


def _dot_quote(text: str) -> str:
    # Same escaping pydot applies to quoted ids and attributes
    return '"' + str(text).replace('"', '\\"') + '"'


def to_dot(net, rankdir: str = "TB", marking: Optional[Mapping] = None) -> str:
    """Generates a plain Graphviz DOT string; marked places are filled green."""
    lines = ["digraph {", f"    rankdir={rankdir};", "    node [shape=circle];"]

    for p in net.places:
        fill = " style=filled fillcolor=green" if marking is not None and marking.get(p.id, 0) > 0 else ""
        lines.append(f'    {_dot_quote("p" + p.id)} [label={_dot_quote(p.name)}{fill}];')

    for t in net.transitions:
        lines.append(f'    {_dot_quote("t" + t.id)} [label={_dot_quote(t.name)} shape=box];')

    for a in net.arcs:
        place, transition = _dot_quote("p" + a.place_id), _dot_quote("t" + a.transition_id)
        if a.from_place:
            lines.append(f'    {place} -> {transition};')
        else:
            lines.append(f'    {transition} -> {place};')

    lines.append("}")
    return "\n".join(lines)


def _mermaid_id(prefix: str, node_id: str) -> str:
    # Mermaid ids cannot carry dots or dashes
    return prefix + "".join(c if c.isalnum() or c == "_" else "_" for c in node_id)


def _mermaid_label(text: str) -> str:
    # Quotes end a Mermaid label; the entity code renders as one
    return str(text).replace('"', "#quot;")


def to_mermaid(net, marking: Optional[Mapping] = None) -> str:
    """Generates a Mermaid flowchart; places are circles, transitions boxes."""
    enabled = {t.id for t in net.enabled_transitions(marking)} if marking is not None else set()
    lines = ["flowchart LR"]

    for p in net.places:
        tokens = marking.get(p.id, 0) if marking is not None else 0
        suffix = f" ({tokens})" if tokens else ""
        lines.append(f'    {_mermaid_id("p", p.id)}(("{_mermaid_label(p.name)}{suffix}"))')

    for t in net.transitions:
        lines.append(f'    {_mermaid_id("t", t.id)}["{_mermaid_label(t.name)}"]')

    for a in net.arcs:
        place, transition = _mermaid_id("p", a.place_id), _mermaid_id("t", a.transition_id)
        if a.from_place:
            lines.append(f"    {place} --> {transition}")
        else:
            lines.append(f"    {transition} --> {place}")

    if marking is not None:
        lines.append("    classDef marked fill:#9f9,stroke:#333")
        lines.append("    classDef enabled fill:#9f9,stroke:#060,stroke-width:2px")
        marked = [_mermaid_id("p", p.id) for p in net.places if marking.get(p.id, 0) > 0]
        fireable = [_mermaid_id("t", t.id) for t in net.transitions if t.id in enabled]
        if marked:
            lines.append(f"    class {','.join(marked)} marked")
        if fireable:
            lines.append(f"    class {','.join(fireable)} enabled")

    return "\n".join(lines)


def _event_dict(event: Event) -> Dict[str, Any]:
    return {
        "id": event.id,
        "name": event.name,
        "fields": [{"name": f.name, "type": f.type} for f in event.fields],
    }


def _device_dict(device: Device) -> Dict[str, Any]:
    return {
        "id": device.id,
        "name": device.name,
        "instances": [{"id": i.id, "name": i.name, "addr": i.addr} for i in device.instances],
    }


def description_to_dict(desc: NetDescription) -> Dict[str, Any]:
    """The description in the persistence layer's JSON shape."""
    return {
        "id": desc.id,
        "name": desc.name,
        "description": desc.description,
        "places": [{"id": p.id, "name": p.name, "bound": p.bound} for p in desc.places],
        "transitions": [
            {"id": t.id, "name": t.name, "events": [_event_dict(e) for e in t.events]}
            for t in desc.transitions
        ],
        "arcs": [
            {"placeID": a.place_id, "transitionID": a.transition_id, "fromPlace": a.from_place}
            for a in desc.arcs
        ],
        "initialMarking": desc.positional_marking(),
        "children": [description_to_dict(c) for c in desc.children],
        "placeInterfaces": [
            {"id": i.id, "name": i.name, "bound": i.bound, "initialTokens": i.initial_tokens,
             "places": [{"id": m} for m in i.members]}
            for i in desc.place_interfaces
        ],
        "transitionInterfaces": [
            {"id": i.id, "name": i.name, "events": [_event_dict(e) for e in i.events],
             "transitions": [{"id": m} for m in i.members]}
            for i in desc.transition_interfaces
        ],
        "devices": [_device_dict(d) for d in desc.devices],
    }


def to_json(net) -> str:
    """Exports the net description to JSON."""
    return json.dumps(description_to_dict(net.description), indent=4)


def marking_to_json(marking: Mapping) -> str:
    return json.dumps(dict(marking), sort_keys=True)
