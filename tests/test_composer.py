import unittest
import os
import sys
import logging

sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from choreonet.structures import (
    Arc, Device, Event, Instance, NetDescription, Place, PlaceInterface, Transition,
    TransitionInterface,
)
from choreonet.net import PetriNet
from choreonet.composer import flatten
from choreonet.exceptions import CompositionError, NotFoundError

logging.basicConfig(level=logging.DEBUG)


def child(name, extra_places=(), extra_tokens=(), **kwargs):
    """<name>.ready -> [<name>.go] -> <name>.done"""
    return NetDescription(
        id=name,
        name=name,
        places=[Place(f"{name}.ready", "ready"), Place(f"{name}.done", "done"), *extra_places],
        transitions=[Transition(f"{name}.go", "go", [Event(f"{name}.go", "go")]), *kwargs.pop("transitions", ())],
        arcs=[Arc(f"{name}.ready", f"{name}.go", True), Arc(f"{name}.done", f"{name}.go", False),
              *kwargs.pop("arcs", ())],
        initial_marking=[1, 0, *extra_tokens],
        **kwargs,
    )


def rig(place_members=("a.done", "b.done"), transition_members=("a.go", "b.go")):
    a = child(
        "a",
        transitions=[Transition("a.reset", "reset", [Event("a.reset", "reset")])],
        arcs=[Arc("a.done", "a.reset", True), Arc("a.ready", "a.reset", False)],
        devices=[Device("a.pump", "Pump", [Instance("a.pump1", "Pump 1")])],
    )
    b = child("b", extra_places=[Place("b.spare", "spare", 2)], extra_tokens=[2])
    return NetDescription(
        id="rig",
        name="rig",
        places=[Place("armed", "armed")],
        arcs=[Arc("armed", "sync", True)],
        initial_marking=[1],
        children=[a, b],
        place_interfaces=[PlaceInterface("done", "Done", place_members, bound=2)],
        transition_interfaces=[
            TransitionInterface("sync", "Sync", transition_members, events=[Event("sync", "sync")])],
    )


class TestCombinedNet(unittest.TestCase):
    def setUp(self):
        self.source = rig()
        self.net = PetriNet(self.source, max_cascade=25)
        self.flat = self.net.combined_net()

    def test_members_are_replaced_by_aggregates(self):
        self.assertEqual([p.id for p in self.flat.places], ["armed", "a.ready", "b.ready", "b.spare", "done"])
        self.assertEqual([t.id for t in self.flat.transitions], ["a.reset", "sync"])
        self.assertEqual(self.flat.id2place["done"].bound, 2)

    def test_arcs_are_rewritten(self):
        self.assertEqual(self.flat.arcs, (
            Arc("armed", "sync", True),
            Arc("a.ready", "sync", True),
            Arc("done", "sync", False),
            Arc("done", "a.reset", True),
            Arc("a.ready", "a.reset", False),
            Arc("b.ready", "sync", True),
            Arc("done", "sync", False),
        ))

    def test_aggregate_transition_carries_interface_events(self):
        self.assertEqual([e.id for e in self.flat.events], ["a.reset", "sync"])
        self.assertFalse(self.flat.event_enabled(self.flat.initial_marking, "a.go"))

    def test_initial_marking_is_aligned(self):
        self.assertEqual(self.flat.initial_marking,
                         {"armed": 1, "a.ready": 1, "b.ready": 1, "b.spare": 2, "done": 0})
        self.assertEqual(self.flat.description.positional_marking(), [1, 1, 1, 2, 0])

    def test_flat_net_executes(self):
        marking = self.flat.handle_event(self.flat.initial_marking, "sync")
        self.assertEqual(marking, {"armed": 0, "a.ready": 0, "b.ready": 0, "b.spare": 2, "done": 2})
        self.assertTrue(self.flat.event_enabled(marking, "a.reset"))

    def test_source_is_not_mutated(self):
        self.assertEqual(self.source, rig())
        self.assertIn(Arc("a.done", "a.go", False), self.source.children[0].arcs)
        self.assertEqual(len(self.net.places), 1)

    def test_flattening_is_deterministic(self):
        self.assertEqual(self.net.combined_net().description, self.flat.description)

    def test_engine_options_are_kept(self):
        self.assertEqual(self.flat.max_cascade, 25)
        self.assertFalse(self.flat.description.is_hierarchical)

    def test_devices_are_carried(self):
        self.assertEqual(self.flat.instance_of("a.pump1"), "a.pump")
        groups = self.flat.device_events(self.flat.initial_marking)
        self.assertEqual([(s.id, s.enabled) for s in groups[0].events], [("a.reset", False)])

    def test_aggregate_place_initial_tokens(self):
        source = NetDescription(
            id="rig", name="rig",
            children=[child("a"), child("b")],
            place_interfaces=[PlaceInterface("ready", "Ready", ("a.ready", "b.ready"), initial_tokens=1)],
        )
        flat = PetriNet(source).combined_net()
        self.assertEqual(flat.initial_marking.tokens("ready"), 1)


class TestCompositionErrors(unittest.TestCase):

    def test_unknown_place_member(self):
        with self.assertRaises(CompositionError):
            PetriNet(rig(place_members=("a.done", "c.done"))).combined_net()

    def test_unknown_transition_member(self):
        with self.assertRaises(NotFoundError):
            PetriNet(rig(transition_members=("a.go", "a.stop"))).combined_net()

    def test_parent_nodes_cannot_be_members(self):
        with self.assertRaises(CompositionError):
            PetriNet(rig(place_members=("armed",))).combined_net()

    def test_member_claimed_twice(self):
        source = NetDescription(
            id="rig", name="rig",
            children=[child("a"), child("b")],
            place_interfaces=[
                PlaceInterface("x", "x", ("a.done",)),
                PlaceInterface("y", "y", ("a.done", "b.done")),
            ],
        )
        with self.assertRaises(CompositionError):
            flatten(source)


    def test_dangling_child_arcs(self):
        source = NetDescription(
            id="rig", name="rig",
            children=[child("a", arcs=[Arc("a.ghost", "a.go", False)]), child("b")],
        )
        with self.assertRaises(CompositionError):
            flatten(source)
        with self.assertRaises(NotFoundError):
            PetriNet(source)

    def test_dangling_parent_arc(self):
        source = NetDescription(
            id="rig", name="rig",
            places=[Place("armed", "armed")],
            arcs=[Arc("armed", "nowhere", True)],
            initial_marking=[1],
            children=[child("a")],
        )
        with self.assertRaises(CompositionError):
            flatten(source)


class TestNestedFlattening(unittest.TestCase):

    def test_grandchildren_are_flattened_first(self):
        inner = NetDescription(
            id="a", name="a",
            children=[child("a.x"), child("a.y")],
            transition_interfaces=[TransitionInterface("a.both", "both", ("a.x.go", "a.y.go"),
                                                       events=[Event("a.both", "both")])],
        )
        source = NetDescription(id="top", name="top", children=[inner])
        flat = PetriNet(source).combined_net()

        self.assertEqual([t.id for t in flat.transitions], ["a.both"])
        marking = flat.handle_event(flat.initial_marking, "a.both")
        self.assertEqual(marking.tokens("a.x.done"), 1)
        self.assertEqual(marking.tokens("a.y.done"), 1)


if __name__ == "__main__":
    unittest.main()
