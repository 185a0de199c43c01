"""
choreonet - Command line interface.
Lists events, replays runs, exports and animates nets.
"""

import argparse
import logging
import os
import sys
from io import BytesIO

import imageio
import numpy as np
from PIL import Image

from choreonet import PetriNet, PetriNetError, PetriNetViewer, RunSession
from choreonet.exporter import to_dot, to_json, to_mermaid
from choreonet.executor import DEFAULT_MAX_CASCADE
from choreonet.simulator import initial_net
from choreonet.transformer import compile_file
from choreonet.viewer import COLOR_PROFILES

# Configure logging to show up in the console when running the CLI
logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger("choreonet.cli")


def generate_gif(net: PetriNet, event_ids, output_path, color_profile="default"):
    """Replays the events and compiles one frame per marking."""
    session = RunSession(net)
    session.replay(event_ids)
    frames = []

    print(f"🎬 Generating animation ({len(session.history)} frames)...")
    logger.info(f"Animation started for {output_path}")

    for i, marking in enumerate(session.history):
        graph = PetriNetViewer(net, marking=marking, color_profile=color_profile).to_pydot_graph()
        caption = "initial" if i == 0 else session.actions[i - 1].event_name
        graph.set_label(f"Step: {i} | {caption}")
        graph.set_labelloc("t")
        graph.set_fontsize(14)

        png_data = graph.create_png()
        frames.append(np.array(Image.open(BytesIO(png_data)).convert("RGB")))

    # Frames of different sizes cannot be stacked into one GIF
    height = max(f.shape[0] for f in frames)
    width = max(f.shape[1] for f in frames)
    padded = []
    for frame in frames:
        canvas = np.full((height, width, 3), 255, dtype=np.uint8)
        canvas[:frame.shape[0], :frame.shape[1]] = frame
        padded.append(canvas)

    imageio.mimsave(output_path, padded, duration=600, loop=0)
    print(f"✅ Animation saved to: {output_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="choreonet", description="choreonet: device choreography nets")
    parser.add_argument("file", help="Path to a .net or .json net description")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--max-cascade", type=int, default=DEFAULT_MAX_CASCADE,
                        help="Maximum silent firings after one event")
    parser.add_argument("--multiset", action="store_true",
                        help="Require one token per input arc drawing from the same place")
    parser.add_argument("--flat", action="store_true", help="Do not flatten hierarchical nets")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Sub-commands")

    # --- Events Command ---
    subparsers.add_parser("events", help="List events and whether they are enabled")

    # --- Run Command ---
    run_p = subparsers.add_parser("run", help="Replay a sequence of events")
    run_p.add_argument("events", nargs="+", help="Event ids, in order")
    run_p.add_argument("--csv", help="CSV action log path")
    run_p.add_argument("--json", help="JSON marking history path")

    # --- Export Command ---
    exp_p = subparsers.add_parser("export", help="Export net to various formats")
    exp_p.add_argument("--format", choices=["json", "dot", "mermaid", "diagram", "png"], required=True)
    exp_p.add_argument("--profile", choices=sorted(COLOR_PROFILES), default="default")
    exp_p.add_argument("-o", "--output", required=True, help="Output filename")

    # --- Animate Command ---
    anim_p = subparsers.add_parser("animate", help="Generate a GIF animation of a replay")
    anim_p.add_argument("events", nargs="+", help="Event ids, in order")
    anim_p.add_argument("--profile", choices=sorted(COLOR_PROFILES), default="default")
    anim_p.add_argument("-o", "--output", default="output/replay.gif", help="Output filename")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger("choreonet").setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled.")

    if not os.path.exists(args.file):
        logger.error(f"File '{args.file}' not found.")
        sys.exit(1)

    try:
        description = compile_file(args.file)
        logger.info(f"Compiled {args.file} successfully.")
        options = {"max_cascade": args.max_cascade, "multiset": args.multiset}
        net = PetriNet(description, **options) if args.flat else initial_net(description, **options)
    except (ValueError, PetriNetError) as e:
        logger.error(f"Compilation Error: {e}")
        sys.exit(1)

    if args.command == "events":
        for status in net.all_events(net.initial_marking):
            mark = "✅" if status.enabled else "  "
            print(f" {mark} {status.id:<20} {status.name}")

    elif args.command == "run":
        session = RunSession(net)
        try:
            session.replay(args.events)
        except PetriNetError as e:
            logger.error(f"Run aborted: {e}")
            sys.exit(1)

        for i, marking in enumerate(session.history):
            print(f" {i:3d} | {dict(marking)}")
        if args.csv:
            session.export_csv(args.csv)
        if args.json:
            session.export_json(args.json)

    elif args.command == "export":
        logger.info(f"Exporting net to {args.format} format.")
        if args.format == "json":
            with open(args.output, "w") as f: f.write(to_json(net))
        elif args.format == "dot":
            with open(args.output, "w") as f: f.write(to_dot(net, marking=net.initial_marking))
        elif args.format == "mermaid":
            with open(args.output, "w") as f: f.write(to_mermaid(net, net.initial_marking))
        elif args.format == "diagram":
            with open(args.output, "w") as f: f.write(net.to_diagram(color_profile=args.profile))
        elif args.format == "png":
            PetriNetViewer(net, color_profile=args.profile).save_png(args.output)
        print(f"✅ Exported to {args.output}")

    elif args.command == "animate":
        out_dir = os.path.dirname(args.output)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        generate_gif(net, args.events, args.output, args.profile)


if __name__ == "__main__":
    main()
