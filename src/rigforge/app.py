"""RigForge command line entry point.

Imports a rig description into a fresh scene, reports what was built
and optionally evaluates the deformed meshes at a time.

Usage::

    rigforge character.rig.json
    rigforge character.rig.json --start 1 --end 24 --evaluate 12
    rigforge character.rig.json --options import.json --exclude /Root/Props
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from rigforge.coordination.evaluation import GraphEvaluator
from rigforge.coordination.import_pipeline import ImportResult, SkelImportPipeline
from rigforge.core.config_loader import load_import_options
from rigforge.core.errors import RigImportError
from rigforge.core.events import EventBus, EventType
from rigforge.core.options import ImportOptions
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import Scene
from rigforge.loaders.rig_loader import load_rig, populate_scene

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rigforge",
        description="Build a skinning deformation graph from a rig description.",
    )
    parser.add_argument("rig", type=Path, help="Rig description JSON file")
    parser.add_argument("--options", type=Path, help="Import options JSON file")
    parser.add_argument("--start", type=float, help="First time sample to import")
    parser.add_argument("--end", type=float, help="Last time sample to import")
    parser.add_argument("--no-anim", action="store_true", help="Import the rest pose only")
    parser.add_argument("--no-bind-pose", action="store_true",
                        help="Do not create a bind pose record")
    parser.add_argument("--exclude", action="append", default=[], metavar="PRIM",
                        help="Mesh prim path to leave out (repeatable)")
    parser.add_argument("--evaluate", type=float, metavar="TIME",
                        help="Evaluate the rig at TIME and print deformed mesh bounds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def resolve_options(args: argparse.Namespace) -> ImportOptions:
    options = load_import_options(args.options) if args.options else ImportOptions()
    if args.start is not None or args.end is not None:
        if args.start is None or args.end is None:
            raise ValueError("--start and --end must be given together")
        options.set_frame_range(args.start, args.end)
    if args.no_anim:
        options.read_anim_data = False
    if args.no_bind_pose:
        options.create_bind_pose = False
    options.excluded_prims.extend(p for p in args.exclude if p not in options.excluded_prims)
    return options


def print_summary(result: ImportResult, num_nodes: int) -> None:
    skeleton = result.skeleton
    print(f"Skeleton {skeleton.skel_query.prim_path}: {len(skeleton.joints)} joints, "
          f"{len(skeleton.time_samples)} time sample(s)")
    if skeleton.bind_pose is not None:
        print(f"  bind pose: {skeleton.bind_pose.name}")
    for binding in result.bindings:
        line = f"  {binding.prim_path}: {binding.status.name.lower()}"
        if binding.skin_cluster is not None:
            line += f" ({binding.skin_cluster.name})"
        if binding.error is not None:
            line += f" - {binding.error}"
        print(line)
    print(f"Created {num_nodes} nodes")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(name)s: %(message)s")

    try:
        options = resolve_options(args)
        rig = load_rig(args.rig)
    except (OSError, ValueError) as exc:
        logger.error("%s", exc)
        return 2

    scene = Scene()
    registry = NodeRegistry()
    event_bus = EventBus()
    event_bus.subscribe(EventType.MESH_FAILED,
                        lambda result: logger.warning("Could not bind %s", result.prim_path))

    populate_scene(rig, scene, options, registry)
    pipeline = SkelImportPipeline(scene, options, event_bus, registry)
    try:
        result = pipeline.run(rig.skeleton, rig.skinning_queries)
    except RigImportError as exc:
        logger.error("Skeleton import failed: %s", exc)
        return 1

    print_summary(result, len(registry))

    if args.evaluate is not None:
        deformed = GraphEvaluator(scene).evaluate(args.evaluate)
        for name, points in sorted(deformed.items()):
            if len(points) == 0:
                continue
            lo, hi = points.min(axis=0), points.max(axis=0)
            print(f"  {name} @ {args.evaluate:g}: min {lo.round(4).tolist()} "
                  f"max {hi.round(4).tolist()}")

    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
