"""Exception types raised while building a skinning rig."""


class RigImportError(Exception):
    """Base class for all rig import failures."""


class MissingParentError(RigImportError):
    """A joint's parent node could not be resolved (joint ordering violated)."""


class RestStateError(RigImportError):
    """Rest transforms could not be applied to the joint nodes."""


class AnimWriteError(RigImportError):
    """Sample/time count mismatch, or an animation curve could not be written."""


class GraphWireError(RigImportError):
    """A batched graph edit failed and was rolled back."""


class SkinBindError(RigImportError):
    """Binding a single mesh to the skeleton failed."""


class SingularBindMatrixError(SkinBindError):
    """A joint's skel-space rest transform is not invertible."""


class RigFormatError(RigImportError):
    """A rig description file is malformed."""
