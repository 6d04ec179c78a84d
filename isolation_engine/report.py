"""
Downloadable analysis reports (CSV and JSON) for a modal calculation.
"""

import csv
import io
import json
from typing import Dict

from isolation_engine.modal import ModalResult
from isolation_engine.parameters import RigidBodyParameters, parameters_to_dict

ANALYSIS_TYPE = 'Basic'


def build_report(params: RigidBodyParameters, result: ModalResult) -> Dict:
    """
    Assemble the report contents.

    Returns a dict with the input summary, full inputs, and one row per mode.
    """
    return {
        'summary': {
            'system_mass': params.mass,
            'mount_count': len(params.mounting_points),
            'analysis_type': ANALYSIS_TYPE,
        },
        'parameters': parameters_to_dict(params),
        'modes': result.modes(),
        'generated_by': 'Isolator Modal Analysis Engine',
    }


def export_csv(params: RigidBodyParameters, result: ModalResult) -> str:
    """Export modes as CSV string."""
    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow(['Mode', 'Description', 'Frequency (Hz)'])
    for mode in result.modes():
        writer.writerow([
            mode['index'],
            mode['description'],
            f"{mode['frequency_hz']:.3f}",
        ])

    # Input summary rows
    writer.writerow([])
    writer.writerow(['System Mass', params.mass, ''])
    writer.writerow(['Number of Mounts', len(params.mounting_points), ''])
    writer.writerow(['Analysis Type', ANALYSIS_TYPE, ''])

    return output.getvalue()


def export_json(params: RigidBodyParameters, result: ModalResult) -> str:
    """Export report as JSON string."""
    return json.dumps(build_report(params, result), indent=2)
