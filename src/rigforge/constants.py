"""Shared constants for RigForge."""

import sys

# Node types
TRANSFORM_TYPE = "transform"
JOINT_TYPE = "joint"
MESH_TYPE = "mesh"
DAG_POSE_TYPE = "dagPose"
SKIN_CLUSTER_TYPE = "skinCluster"
GROUP_ID_TYPE = "groupId"
GROUP_PARTS_TYPE = "groupParts"
ANIM_CURVE_TYPE = "animCurve"

# Default node names
SKELETON_CONTAINER_NAME = "Skeleton"
BIND_POSE_NAME = "bindPose"
SKIN_CLUSTER_GROUP_ID_NAME = "skinClusterGroupId"
SKIN_CLUSTER_GROUP_PARTS_NAME = "skinClusterGroupParts"
REST_MESH_SUFFIX = "_rest"

# Transform channels, in (translate, rotate, scale) x (X, Y, Z) order
TRANSLATE_ATTRS = ("translateX", "translateY", "translateZ")
ROTATE_ATTRS = ("rotateX", "rotateY", "rotateZ")
SCALE_ATTRS = ("scaleX", "scaleY", "scaleZ")
TRS_ATTRS = TRANSLATE_ATTRS + ROTATE_ATTRS + SCALE_ATTRS

# Component selection used by the skin cluster group parts (all points)
ALL_VERTS_COMPONENT = "vtx[*]"

# Joint display radius heuristic (matches the skeleton imaging bone scale)
JOINT_RADIUS_SCALE = 0.1
DEFAULT_JOINT_RADIUS = 1.0

# Fallback sample time when no animation is available ("earliest" marker)
EARLIEST_TIME = -sys.float_info.max

# Numeric tolerances
DECOMPOSE_EPSILON = 1e-10
ORTHOGONALITY_TOLERANCE = 1e-4
