"""
Rigid-body input parameters and their conversion from form data.

Values typically arrive as strings straight from a web form (``"1"``,
``"0.09851"``, ``""``). Everything is coerced here, once, into immutable
numeric structures; every conversion failure becomes ``InvalidInput``.

Units are the caller's responsibility: mass, inertia and stiffness must be
expressed in one consistent system (e.g. kg, kg·m², N/m).
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from isolation_engine.errors import InvalidInput

REQUIRED_MESSAGE = "Invalid input: mass and mounting locations are required."
MASS_MESSAGE = "Mass must be a positive number."
INERTIA_MESSAGE = "Invalid inertia matrix format."

Vector3 = Tuple[float, float, float]

# Form defaults: unit mass, identity inertia, one unit-stiffness mount
DEFAULT_PARAMETERS = {
    'mass': '1',
    'inertiaMatrix': [['1', '', ''], ['', '1', ''], ['', '', '1']],
    'centerOfMass': {'x': '0', 'y': '0', 'z': '0'},
    'mountingLocations': [
        {'x': '0', 'y': '0', 'z': '0', 'stiffness_x': '1', 'stiffness_y': '1', 'stiffness_z': '1'},
    ],
}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == '')


def _to_float(value: Any) -> float:
    """Convert a number or numeric string to float. Raises ValueError/TypeError."""
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, str):
        value = value.strip()
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"non-finite value: {value!r}")
    return result


def coerce_optional_float(value: Any, default: float = 0.0) -> float:
    """
    Tolerant conversion used for stiffness and coordinates.

    Blank, missing and unparseable values fall back to ``default``.
    """
    if _is_blank(value):
        return default
    try:
        return _to_float(value)
    except (TypeError, ValueError):
        return default


def parse_mass(value: Any) -> float:
    if _is_blank(value):
        raise InvalidInput(REQUIRED_MESSAGE)
    try:
        mass = _to_float(value)
    except (TypeError, ValueError):
        raise InvalidInput(MASS_MESSAGE)
    if mass <= 0:
        raise InvalidInput(MASS_MESSAGE)
    return mass


def parse_inertia_tensor(rows: Optional[Sequence[Sequence[Any]]]) -> np.ndarray:
    """
    Parse a 3x3 inertia tensor.

    Blank cells are zero (the form leaves off-diagonal terms empty). Text that
    is not a number, or a shape other than 3x3, is rejected.
    """
    if rows is None:
        return np.eye(3)
    if isinstance(rows, (str, bytes)) or not isinstance(rows, (list, tuple, np.ndarray)):
        raise InvalidInput(INERTIA_MESSAGE)
    if len(rows) != 3:
        raise InvalidInput(INERTIA_MESSAGE)

    tensor = np.zeros((3, 3))
    for i, row in enumerate(rows):
        if isinstance(row, (str, bytes)) or not isinstance(row, (list, tuple, np.ndarray)) or len(row) != 3:
            raise InvalidInput(INERTIA_MESSAGE)
        for j, cell in enumerate(row):
            if _is_blank(cell):
                continue
            try:
                tensor[i, j] = _to_float(cell)
            except (TypeError, ValueError):
                raise InvalidInput(INERTIA_MESSAGE)
    return tensor


def _vector(data: Optional[Mapping], keys: Sequence[str]) -> Vector3:
    data = data or {}
    return tuple(coerce_optional_float(data.get(k)) for k in keys)


@dataclass(frozen=True)
class MountingPoint:
    """A discrete elastic mount: position plus translational stiffness per axis."""
    position: Vector3 = (0.0, 0.0, 0.0)
    stiffness: Vector3 = (0.0, 0.0, 0.0)

    def __post_init__(self):
        if len(self.position) != 3 or len(self.stiffness) != 3:
            raise InvalidInput("Mounting points need 3 coordinates and 3 stiffness values.")
        try:
            position = tuple(_to_float(v) for v in self.position)
            stiffness = tuple(_to_float(v) for v in self.stiffness)
        except (TypeError, ValueError):
            raise InvalidInput("Mount coordinates and stiffness values must be numbers.")
        if any(k < 0 for k in stiffness):
            raise InvalidInput("Mount stiffness values must not be negative.")
        object.__setattr__(self, 'position', position)
        object.__setattr__(self, 'stiffness', stiffness)

    @classmethod
    def from_form(cls, data: Mapping) -> 'MountingPoint':
        """Build from a form row with keys x, y, z, stiffness_x, stiffness_y, stiffness_z."""
        if not isinstance(data, Mapping):
            raise InvalidInput("Each mounting location must be an object.")
        return cls(
            position=_vector(data, ('x', 'y', 'z')),
            stiffness=_vector(data, ('stiffness_x', 'stiffness_y', 'stiffness_z')),
        )


@dataclass(frozen=True)
class RigidBodyParameters:
    """
    Inputs for one modal calculation.

    ``center_of_mass`` and each mount's ``position`` are carried for the
    report and for a future coupled stiffness model; the current solver does
    not use them.
    """
    mass: float
    inertia_tensor: np.ndarray
    mounting_points: Tuple[MountingPoint, ...]
    center_of_mass: Vector3 = (0.0, 0.0, 0.0)

    def __post_init__(self):
        try:
            mounts = () if self.mounting_points is None else tuple(self.mounting_points)
        except TypeError:
            raise InvalidInput("Mounting points must be MountingPoint instances.")
        if _is_blank(self.mass) or not mounts:
            raise InvalidInput(REQUIRED_MESSAGE)
        mass = parse_mass(self.mass)

        try:
            tensor = np.array(self.inertia_tensor, dtype=float)
        except (TypeError, ValueError):
            raise InvalidInput(INERTIA_MESSAGE)
        if tensor.shape != (3, 3) or not np.all(np.isfinite(tensor)):
            raise InvalidInput(INERTIA_MESSAGE)
        if np.any(np.diag(tensor) <= 0):
            raise InvalidInput("Principal moments of inertia (matrix diagonal) must be positive.")
        tensor.setflags(write=False)

        if not all(isinstance(mp, MountingPoint) for mp in mounts):
            raise InvalidInput("Mounting points must be MountingPoint instances.")

        object.__setattr__(self, 'mass', mass)
        object.__setattr__(self, 'inertia_tensor', tensor)
        object.__setattr__(self, 'mounting_points', mounts)

    @property
    def principal_moments(self) -> np.ndarray:
        """Diagonal of the inertia tensor (Ixx, Iyy, Izz)."""
        return np.diag(self.inertia_tensor).copy()

    @property
    def total_stiffness(self) -> np.ndarray:
        """Sum of mount stiffnesses per global axis (parallel springs)."""
        return np.sum([mp.stiffness for mp in self.mounting_points], axis=0)


def parse_parameters(data: Mapping) -> RigidBodyParameters:
    """
    Convert raw form state into ``RigidBodyParameters``.

    Accepts the form's camelCase keys (``inertiaMatrix``, ``centerOfMass``,
    ``mountingLocations``) as well as snake_case equivalents.

    Raises:
        InvalidInput: on missing mass or mounts, non-positive mass, or a
            malformed inertia matrix.
    """
    if not isinstance(data, Mapping):
        raise InvalidInput(REQUIRED_MESSAGE)

    mounts_raw = _first_present(data, 'mountingLocations', 'mounting_locations', 'mounting_points')
    if _is_blank(data.get('mass')) or not mounts_raw:
        raise InvalidInput(REQUIRED_MESSAGE)

    mass = parse_mass(data.get('mass'))
    tensor = parse_inertia_tensor(_first_present(data, 'inertiaMatrix', 'inertia_matrix', 'inertia_tensor'))
    mounts = tuple(MountingPoint.from_form(m) for m in mounts_raw)
    com = _vector(_first_present(data, 'centerOfMass', 'center_of_mass'), ('x', 'y', 'z'))

    return RigidBodyParameters(
        mass=mass,
        inertia_tensor=tensor,
        mounting_points=mounts,
        center_of_mass=com,
    )


def _first_present(data: Mapping, *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def parameters_to_dict(params: RigidBodyParameters) -> Dict:
    """Plain-data view of parameters (for reports and API echoes)."""
    return {
        'mass': params.mass,
        'inertia_matrix': params.inertia_tensor.tolist(),
        'center_of_mass': list(params.center_of_mass),
        'mounting_locations': [
            {
                'x': mp.position[0], 'y': mp.position[1], 'z': mp.position[2],
                'stiffness_x': mp.stiffness[0],
                'stiffness_y': mp.stiffness[1],
                'stiffness_z': mp.stiffness[2],
            }
            for mp in params.mounting_points
        ],
    }
