"""
Isolator Modal Analysis Engine

Computes the undamped natural frequencies of a rigid body supported on
discrete 3-axis elastic mounts (6 degrees of freedom).

Pure and deterministic: no I/O, no shared state between calls.
"""

from isolation_engine.errors import ModalAnalysisError, InvalidInput, ComputationError, SingularMatrix
from isolation_engine.parameters import MountingPoint, RigidBodyParameters, parse_parameters, DEFAULT_PARAMETERS
from isolation_engine.modal import (
    MODE_DESCRIPTIONS,
    NUM_DOF,
    ModalResult,
    assemble_mass_matrix,
    assemble_stiffness_matrix,
    compute_modal_result,
    eigenvalues_to_frequencies,
)
from isolation_engine.report import build_report, export_csv, export_json

__version__ = "0.1.0"
