"""
choreonet - Visualization module using Graphviz/Pydot.
Translates a net and a marking into a graphical representation.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import pydot

from .structures import Place, Transition

TOKEN_CHAR = "●"


@dataclass(frozen=True)
class ColorProfile:
    """Colors used to render a net under a marking."""
    marked_place: str = "palegreen"
    empty_place: str = "white"
    enabled_transition: str = "palegreen"
    disabled_transition: str = "lightgrey"
    enabled_arc: str = "darkgreen"
    disabled_arc: str = "grey50"
    cluster: str = "lightgrey"


COLOR_PROFILES: Dict[str, ColorProfile] = {
    "default": ColorProfile(),
    "monochrome": ColorProfile(
        marked_place="grey30",
        empty_place="white",
        enabled_transition="black",
        disabled_transition="grey85",
        enabled_arc="black",
        disabled_arc="grey70",
        cluster="grey85",
    ),
}


def get_color_profile(profile: Union[str, ColorProfile]) -> ColorProfile:
    if isinstance(profile, ColorProfile):
        return profile
    try:
        return COLOR_PROFILES[profile]
    except KeyError:
        raise KeyError(f"Unknown color profile: {profile}") from None


def place_node_id(place_id: str) -> str:
    return f"p{place_id}"


def transition_node_id(transition_id: str) -> str:
    return f"t{transition_id}"


class PetriNetViewer:
    """Generates Pydot graphs from a PetriNet and an optional marking."""

    def __init__(self, net, marking: Optional[Mapping] = None,
                 color_profile: Union[str, ColorProfile] = "default",
                 place_size: float = 0.4, rankdir: str = "LR"):
        if not hasattr(net, "enabled_transitions"):
            raise ValueError("Input must be a PetriNet")
        self.net = net
        self.marking = marking if marking is not None else net.initial_marking
        self.colors = get_color_profile(color_profile)
        self.place_size = place_size
        self.rankdir = rankdir
        self._enabled = {t.id for t in net.enabled_transitions(self.marking)}

    def _place_style(self, place: Place) -> Dict[str, Any]:
        tokens = self.marking.get(place.id, 0)
        style = {
            "shape": "circle",
            "width": self.place_size,
            "height": self.place_size,
            "fixedsize": "true",
            "style": "filled",
            "fillcolor": self.colors.marked_place if tokens else self.colors.empty_place,
            "xlabel": place.name,
        }
        if tokens == 1:
            style["label"] = TOKEN_CHAR
        else:
            style["label"] = str(tokens) if tokens else ""
        return style

    def _transition_style(self, transition: Transition) -> Dict[str, Any]:
        enabled = transition.id in self._enabled
        return {
            "shape": "box",
            "style": "filled" if transition.events else "filled,dashed",
            "fillcolor": self.colors.enabled_transition if enabled else self.colors.disabled_transition,
            "label": transition.name,
        }

    def to_pydot_graph(self) -> pydot.Dot:
        """Constructs a pydot.Dot object representing the net."""
        graph = pydot.Dot(
            graph_type="digraph",
            rankdir=self.rankdir,
            nodesep=0.5,
            forcelabels="true",
        )

        subgraphs: Dict[str, pydot.Subgraph] = {}

        def container(net_id: Optional[str]):
            # Nodes of child nets are grouped in clusters
            if not net_id or net_id == self.net.id:
                return graph
            if net_id not in subgraphs:
                subgraphs[net_id] = pydot.Subgraph(
                    f"cluster_{net_id}", color=self.colors.cluster, label=f"Subnet {net_id}")
                graph.add_subgraph(subgraphs[net_id])
            return subgraphs[net_id]

        for place in self.net.places:
            node = pydot.Node(place_node_id(place.id), **self._place_style(place))
            container(place.net_id).add_node(node)

        for transition in self.net.transitions:
            node = pydot.Node(transition_node_id(transition.id), **self._transition_style(transition))
            container(transition.net_id).add_node(node)

        for arc in self.net.arcs:
            color = self.colors.enabled_arc if arc.transition_id in self._enabled else self.colors.disabled_arc
            place, transition = place_node_id(arc.place_id), transition_node_id(arc.transition_id)
            source, target = (place, transition) if arc.from_place else (transition, place)
            graph.add_edge(pydot.Edge(source, target, color=color))

        return graph

    def to_diagram(self) -> str:
        """DOT source of the diagram."""
        return self.to_pydot_graph().to_string()

    def save_png(self, filename: str):
        """Helper to render the graph directly to a file."""
        self.to_pydot_graph().write_png(filename)
