"""
choreonet - Run sessions.
Keeps the marking history of one run and exports its action log.
"""

import csv
import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .exporter import marking_to_json
from .net import PetriNet
from .structures import Marking, NetDescription

logger = logging.getLogger("choreonet.simulator")


def initial_net(description: NetDescription, **options) -> PetriNet:
    """Builds the executable net, flattening it when it is hierarchical."""
    net = PetriNet(description, **options)
    if description.is_hierarchical:
        return net.combined_net()
    return net


@dataclass(frozen=True)
class ActionRecord:
    """One handled event: the marking before and after it."""
    step: int
    event_id: str
    event_name: str
    input: Marking
    output: Marking

    @property
    def changed(self) -> bool:
        return self.input != self.output


class RunSession:
    """
    Holds the marking of one run and its append-only history.

    The net is shared and read-only; everything that changes lives here.
    """

    def __init__(self, net: PetriNet, marking: Optional[Marking] = None):
        self.net = net
        self.marking = Marking(marking if marking is not None else net.initial_marking)
        self.history: List[Marking] = [self.marking]
        self.actions: List[ActionRecord] = []

    @property
    def enabled_events(self) -> Dict[str, bool]:
        return {status.id: status.enabled for status in self.net.all_events(self.marking)}

    def dispatch(self, event_id: str) -> Marking:
        """Handles one event and records the resulting marking."""
        before = self.marking
        after = self.net.handle_event(before, event_id)

        event = next((e for e in self.net.events if e.id == event_id), None)
        record = ActionRecord(
            step=len(self.actions) + 1,
            event_id=event_id,
            event_name=event.name if event else event_id,
            input=before,
            output=after,
        )
        self.actions.append(record)
        self.history.append(after)
        self.marking = after

        logger.debug(f"Step {record.step}: {event_id} -> {after.to_dict()}")
        return after

    def replay(self, event_ids: Iterable[str]) -> List[Marking]:
        """Dispatches the events in order; returns the markings they produced."""
        return [self.dispatch(event_id) for event_id in event_ids]

    def export_csv(self, filename: str = "actions.csv"):
        if not self.actions:
            return None
        os.makedirs(os.path.dirname(filename) or '.', exist_ok=True)
        with open(filename, mode='w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=["step", "event_id", "event_name", "changed", "input", "output"])
            writer.writeheader()
            for record in self.actions:
                writer.writerow({
                    "step": record.step,
                    "event_id": record.event_id,
                    "event_name": record.event_name,
                    "changed": record.changed,
                    "input": marking_to_json(record.input),
                    "output": marking_to_json(record.output),
                })
        logger.info(f"Wrote {len(self.actions)} actions to {filename}")
        return filename

    def export_json(self, filename: str = "history.json"):
        data = {
            "net": self.net.id,
            "history": [m.to_dict() for m in self.history],
            "actions": [
                {"step": r.step, "event_id": r.event_id, "event_name": r.event_name, "changed": r.changed}
                for r in self.actions
            ],
        }
        os.makedirs(os.path.dirname(filename) or '.', exist_ok=True)
        with open(filename, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=4)
        logger.info(f"Wrote {len(self.history)} markings to {filename}")
        return filename
