import json
import os
import sys
import tempfile
import unittest

sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from choreonet.structures import Arc, Field, InitialTokens
from choreonet.net import PetriNet
from choreonet.simulator import initial_net
from choreonet.transformer import compile_file, compile_string, parse_string

PUMP_SOURCE = """
# syringe pump
net pump "Syringe pump" {
    place idle "Idle" bound 1 = 1;
    place pumping "Pumping" bound 1;
    transition pump "Pump" on pump "Pump" (volume: number, rate: number);
    transition finish "Finish" on finish;
    arc idle -> pump;
    arc pump -> pumping;
    arc pumping -> finish;
    arc finish -> idle;
    device syringe "Syringe pump" {
        instance s1 "Syringe 1" at "10.0.0.5";
        instance s2;
    }
}
"""

RIG_SOURCE = """
net rig {
    place armed = 1;
    net a {
        place ready = 1;
        place done;
        transition go on go;
        arc ready -> go;
        arc go -> done;
    }
    net b {
        place ready = 1;
        place done;
        transition go on go;
        arc ready -> go;
        arc go -> done;
    }
    interface transition sync "Sync" on sync merges a.go, b.go;
    interface place done "Done" bound 2 merges a.done, b.done;
    arc armed -> sync;
}
"""


class TestNetLanguage(unittest.TestCase):

    def test_basic_structure(self):
        desc, errors = parse_string(PUMP_SOURCE)
        self.assertEqual(errors, [])
        self.assertEqual(desc.id, "pump")
        self.assertEqual(desc.name, "Syringe pump")
        self.assertEqual([(p.id, p.name, p.bound) for p in desc.places],
                         [("idle", "Idle", 1), ("pumping", "Pumping", 1)])
        self.assertEqual(desc.initial_marking, (InitialTokens("idle", 1), InitialTokens("pumping", 0)))

    def test_arc_direction_follows_node_kind(self):
        desc = compile_string(PUMP_SOURCE)
        self.assertEqual(desc.arcs, (
            Arc("idle", "pump", True),
            Arc("pumping", "pump", False),
            Arc("pumping", "finish", True),
            Arc("idle", "finish", False),
        ))

    def test_events_and_fields(self):
        desc = compile_string(PUMP_SOURCE)
        pump = desc.transitions[0].events[0]
        self.assertEqual((pump.id, pump.name), ("pump", "Pump"))
        self.assertEqual(pump.fields, (Field("volume", "number"), Field("rate", "number")))
        finish = desc.transitions[1].events[0]
        self.assertEqual((finish.id, finish.name, finish.fields), ("finish", "finish", ()))

    def test_devices(self):
        device = compile_string(PUMP_SOURCE).devices[0]
        self.assertEqual((device.id, device.name), ("syringe", "Syringe pump"))
        self.assertEqual([(i.id, i.name, i.addr) for i in device.instances],
                         [("s1", "Syringe 1", "10.0.0.5"), ("s2", "s2", "")])

    def test_compiled_net_runs(self):
        net = PetriNet(compile_string(PUMP_SOURCE))
        marking = net.handle_event(net.initial_marking, "pump")
        self.assertEqual(marking, {"idle": 0, "pumping": 1})

    def test_children_are_prefixed(self):
        desc = compile_string(RIG_SOURCE)
        self.assertEqual([c.id for c in desc.children], ["a", "b"])
        self.assertEqual([p.id for p in desc.children[0].places], ["a.ready", "a.done"])
        self.assertEqual(desc.children[1].transitions[0].events[0].id, "b.go")
        self.assertEqual(desc.place_interfaces[0].members, ("a.done", "b.done"))
        self.assertEqual(desc.transition_interfaces[0].members, ("a.go", "b.go"))
        self.assertEqual(desc.arcs, (Arc("armed", "sync", True),))

    def test_hierarchical_net_flattens(self):
        net = initial_net(compile_string(RIG_SOURCE))
        marking = net.handle_event(net.initial_marking, "sync")
        self.assertEqual(marking, {"armed": 0, "a.ready": 0, "b.ready": 0, "done": 2})

    def test_syntax_error(self):
        desc, errors = parse_string("net broken { place ; }")
        self.assertIsNone(desc)
        self.assertEqual(len(errors), 1)
        with self.assertRaises(ValueError):
            compile_string("net broken { place ; }")

    def test_arc_between_places(self):
        _, errors = parse_string("net n { place a; place b; arc a -> b; }")
        self.assertTrue(errors)

    def test_duplicate_names(self):
        _, errors = parse_string("net n { place a; transition a; }")
        self.assertTrue(errors)


class TestCompileFile(unittest.TestCase):

    def write(self, suffix, content):
        with tempfile.NamedTemporaryFile("w", suffix=suffix, delete=False, encoding="utf-8") as tmp:
            tmp.write(content)
        self.addCleanup(os.remove, tmp.name)
        return tmp.name

    def test_net_file(self):
        desc = compile_file(self.write(".net", PUMP_SOURCE))
        self.assertEqual(len(desc.transitions), 2)

    def test_json_file(self):
        path = self.write(".json", json.dumps({
            "id": "n", "name": "n",
            "places": [{"id": "p", "name": "p", "bound": 1}],
            "transitions": [{"id": "t", "name": "t", "events": [{"id": "e", "name": "e"}]}],
            "arcs": [{"placeID": "p", "transitionID": "t", "fromPlace": True}],
            "initialMarking": [1],
        }))
        net = PetriNet(compile_file(path))
        self.assertEqual(net.handle_event(net.initial_marking, "e"), {"p": 0})

    def test_bundled_example(self):
        path = os.path.join(os.path.dirname(__file__), "../nets/liquid_transfer.net")
        net = initial_net(compile_file(path))
        self.assertEqual([d.id for d in net.devices], ["robot.arm", "shaker.shaker"])

        marking = net.initial_marking
        for event_id in ("robot.pick", "handover", "shaker.shake"):
            self.assertTrue(net.event_enabled(marking, event_id), event_id)
            marking = net.handle_event(marking, event_id)
        self.assertEqual(marking.tokens("shaker.shaking"), 1)
        self.assertEqual(marking.tokens("robot.idle"), 1)
        self.assertEqual(marking.tokens("requested"), 0)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            compile_file("does/not/exist.net")


if __name__ == "__main__":
    unittest.main()
