"""Skeleton import chain with per-mesh skin binding and progress events."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from rigforge.core.errors import RigImportError
from rigforge.core.events import EventBus, EventType
from rigforge.core.node_types import DagPose
from rigforge.core.options import ImportOptions
from rigforge.core.registry import NodeRegistry
from rigforge.core.scene_graph import JointNode, Scene, SceneNode
from rigforge.rig.anim_sampler import copy_anim_from_skel
from rigforge.rig.bind_pose import create_bind_pose
from rigforge.rig.joint_hierarchy import create_joint_nodes, create_skeleton_container
from rigforge.rig.rest_state import apply_rest_states
from rigforge.rig.skin_binder import BindStatus, SkinBinder, SkinBindResult
from rigforge.rig.wiring import JointWiring
from rigforge.skel.skeleton_query import SkeletonQuery
from rigforge.skel.skinning_query import SkinningQuery

logger = logging.getLogger(__name__)


@dataclass
class SkeletonImport:
    """Nodes produced for one skeleton."""
    skel_query: SkeletonQuery
    container: SceneNode
    joint_nodes: list[Optional[JointNode]]
    wiring: JointWiring
    time_samples: list[float]
    bind_pose: Optional[DagPose] = None

    @property
    def joints(self) -> list[JointNode]:
        return [n for n in self.joint_nodes if n is not None]


@dataclass
class ImportResult:
    skeleton: SkeletonImport
    bindings: list[SkinBindResult] = field(default_factory=list)

    @property
    def bound(self) -> list[SkinBindResult]:
        return [b for b in self.bindings if b.status == BindStatus.BOUND]

    @property
    def skipped(self) -> list[SkinBindResult]:
        return [b for b in self.bindings if b.skipped]

    @property
    def failed(self) -> list[SkinBindResult]:
        return [b for b in self.bindings if not b.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


class SkelImportPipeline:
    """Runs container -> joints -> rest state -> animation -> bind pose -> skin binding.

    A failure before skin binding removes everything created for the
    skeleton and re-raises.  Skin binding failures are reported per mesh.
    """

    def __init__(
        self,
        scene: Scene,
        options: Optional[ImportOptions] = None,
        event_bus: Optional[EventBus] = None,
        registry: Optional[NodeRegistry] = None,
    ):
        self.scene = scene
        self.options = options or ImportOptions()
        self.event_bus = event_bus or EventBus()
        self.registry = registry if registry is not None else NodeRegistry()

    def import_skeleton(self, skel_query: SkeletonQuery,
                        parent: Optional[SceneNode] = None) -> SkeletonImport:
        created = NodeRegistry()
        try:
            container = create_skeleton_container(skel_query, self.scene, parent, created)
            joint_nodes = create_joint_nodes(skel_query, self.scene, container, created)
            self.event_bus.publish(EventType.JOINTS_CREATED, container=container,
                                   count=sum(n is not None for n in joint_nodes))

            apply_rest_states(skel_query, joint_nodes)

            times = copy_anim_from_skel(skel_query, container, joint_nodes,
                                        self.options, self.scene, created)
            self.event_bus.publish(EventType.ANIMATION_SAMPLED, num_samples=len(times),
                                   animated=len(times) > 1)

            wiring = JointWiring(joint_nodes, skel_query.topology.parents)
            bind_pose = None
            if self.options.create_bind_pose:
                bind_pose = create_bind_pose(skel_query, joint_nodes, self.scene,
                                             created, wiring=wiring)
                self.event_bus.publish(EventType.BIND_POSE_CREATED, node=bind_pose)
        except RigImportError:
            logger.warning("Import of %s failed; removing %d partially created nodes",
                           skel_query.prim_path, len(created))
            created.undo()
            raise

        self.registry.register_all(created)
        return SkeletonImport(skel_query, container, joint_nodes, wiring, times, bind_pose)

    def bind_meshes(self, skeleton: SkeletonImport,
                    skinning_queries: Iterable[SkinningQuery]) -> list[SkinBindResult]:
        binder = SkinBinder(skeleton.skel_query, skeleton.joint_nodes, self.scene,
                            bind_pose=skeleton.bind_pose, registry=self.registry,
                            wiring=skeleton.wiring)
        results = []
        for query in skinning_queries:
            result = binder.bind(query)
            if result.status == BindStatus.BOUND:
                self.event_bus.publish(EventType.MESH_BOUND, result=result)
            elif result.skipped:
                self.event_bus.publish(EventType.MESH_SKIPPED, result=result)
            else:
                self.event_bus.publish(EventType.MESH_FAILED, result=result)
            results.append(result)
        return results

    def run(self, skel_query: SkeletonQuery,
            skinning_queries: Iterable[SkinningQuery] = (),
            parent: Optional[SceneNode] = None) -> ImportResult:
        skeleton = self.import_skeleton(skel_query, parent)
        result = ImportResult(skeleton, self.bind_meshes(skeleton, skinning_queries))
        logger.info("Imported %s: %d joints, %d bound, %d skipped, %d failed",
                    skel_query.prim_path, len(skeleton.joints), len(result.bound),
                    len(result.skipped), len(result.failed))
        self.event_bus.publish(EventType.IMPORT_COMPLETE, result=result)
        return result
