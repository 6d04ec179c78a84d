"""
Six-degree-of-freedom modal analysis of a rigid body on elastic mounts.

The body is modelled with a diagonal mass matrix and a diagonal stiffness
matrix in 6 DOF (x, y, z translation; roll, pitch, yaw rotation):

    M = diag(m, m, m, Ixx, Iyy, Izz)
    K = diag(Σkx, Σky, Σkz, Kroll, Kpitch, Kyaw)

Mount stiffnesses add as parallel springs along each global axis. Mount
offsets from the centre of mass are NOT turned into rotational stiffness;
instead the rotational terms reuse the principal moments of inertia
(see ``rotational_stiffness_from_inertia``). That substitution is kept on
purpose so results match the published calculator.

Natural frequencies come from the eigenvalues of the system matrix:

    A = M⁻¹ · K,    f_i = sqrt(λ_i) / 2π   (λ_i > 0, otherwise 0)

Eigenvalues are reported in the order the decomposition returns them and
paired positionally with MODE_DESCRIPTIONS. The labels are a naming
convention, not a mode-shape check.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple, Union

import numpy as np

from isolation_engine.errors import ComputationError, SingularMatrix
from isolation_engine.parameters import RigidBodyParameters, parse_parameters

NUM_DOF = 6

MODE_DESCRIPTIONS = (
    "Vertical Translation",
    "Lateral Translation",
    "Longitudinal Translation",
    "Roll",
    "Pitch",
    "Yaw",
)


@dataclass(frozen=True)
class ModalResult:
    """Natural frequencies (Hz) paired by index with fixed mode labels."""
    natural_frequencies: Tuple[float, ...]
    mode_descriptions: Tuple[str, ...] = MODE_DESCRIPTIONS

    def modes(self) -> List[Dict]:
        return [
            {'index': i + 1, 'description': desc, 'frequency_hz': freq}
            for i, (freq, desc) in enumerate(zip(self.natural_frequencies, self.mode_descriptions))
        ]

    def to_dict(self) -> Dict:
        return {
            'natural_frequencies': list(self.natural_frequencies),
            'mode_descriptions': list(self.mode_descriptions),
        }


def rotational_stiffness_from_inertia(params: RigidBodyParameters) -> np.ndarray:
    """
    Rotational stiffness terms (roll, pitch, yaw).

    The calculator uses the principal moments of inertia directly as the
    rotational stiffness. This is dimensionally inconsistent (kg·m² is not
    N·m/rad) and makes every rotational eigenvalue exactly 1, i.e. 1/2π Hz.
    A coupled model would build these from mount stiffness and moment arms.
    """
    return params.principal_moments


def assemble_stiffness_matrix(params: RigidBodyParameters) -> np.ndarray:
    """Build the 6x6 stiffness matrix K."""
    translational = params.total_stiffness
    rotational = rotational_stiffness_from_inertia(params)
    return np.diag(np.concatenate([translational, rotational]).astype(float))


def assemble_mass_matrix(params: RigidBodyParameters) -> np.ndarray:
    """Build the 6x6 diagonal mass matrix M."""
    diagonal = np.concatenate([np.full(3, params.mass), params.principal_moments])
    return np.diag(diagonal)


def system_matrix(M: np.ndarray, K: np.ndarray) -> np.ndarray:
    """Return A = M⁻¹·K, raising SingularMatrix if M cannot be inverted."""
    try:
        M_inv = np.linalg.inv(M)
    except np.linalg.LinAlgError as e:
        raise SingularMatrix(f"mass matrix is singular ({e})")
    if not np.all(np.isfinite(M_inv)):
        raise SingularMatrix("mass matrix inverse is not finite")
    return M_inv @ K


def eigenvalues_to_frequencies(eigenvalues: np.ndarray) -> Tuple[float, ...]:
    """
    Map eigenvalues (rad²/s²) to natural frequencies in Hz.

    Non-positive or non-finite eigenvalues map to 0 Hz rather than raising:
    a zero eigenvalue is a rigid-body (unconstrained) mode, and tiny negative
    values are round-off.
    """
    frequencies = []
    for lam in np.real(np.asarray(eigenvalues)):
        if np.isfinite(lam) and lam > 0:
            frequencies.append(float(np.sqrt(lam) / (2 * np.pi)))
        else:
            frequencies.append(0.0)
    return tuple(frequencies)


def compute_modal_result(params: Union[RigidBodyParameters, Mapping]) -> ModalResult:
    """
    Compute the undamped natural frequencies of a rigidly mounted body.

    Args:
        params: RigidBodyParameters, or raw form data which is parsed first.

    Returns:
        ModalResult with 6 frequencies (Hz) and the fixed mode labels.

    Raises:
        InvalidInput: bad parameters (checked before any matrix work).
        SingularMatrix: the mass matrix is not invertible.
        ComputationError: the eigen-decomposition failed.
    """
    if not isinstance(params, RigidBodyParameters):
        params = parse_parameters(params)

    K = assemble_stiffness_matrix(params)
    M = assemble_mass_matrix(params)
    A = system_matrix(M, K)

    try:
        eigenvalues = np.linalg.eigvals(A)
    except np.linalg.LinAlgError as e:
        raise ComputationError(str(e))

    return ModalResult(natural_frequencies=eigenvalues_to_frequencies(eigenvalues))
