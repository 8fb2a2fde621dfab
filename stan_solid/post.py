# stan_solid/post.py
"""
POSTPROCESSING: Derived Stress/Strain Measures and Result Tables
================================================================

PURPOSE:
--------
The solver stores raw Voigt tensors per node and increment. Engineers
usually want scalar measures and tables:

- von Mises stress: one number for yield checks
- principal stresses: eigenvalues of the stress tensor (σ1 ≥ σ2 ≥ σ3)
- equivalent strain: von Mises counterpart for strains
- pandas DataFrames of nodal displacements and element nodal stresses,
  ready for .to_csv()
"""

from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd

from .kernel.matrix import vector_to_tensor
from .v3d.model import Model

STRESS_COMPONENTS = ["XX", "YY", "ZZ", "XY", "YZ", "XZ"]


def von_mises(stress) -> np.ndarray:
    """
    von Mises equivalent stress of Voigt stress vectors, shape (..., 6) → (...).

    >>> float(von_mises([100.0, 0, 0, 0, 0, 0]))
    100.0
    """
    s = np.asarray(stress, dtype=float)
    sxx, syy, szz, sxy, syz, sxz = (s[..., k] for k in range(6))
    return np.sqrt(
        0.5 * ((sxx - syy) ** 2 + (syy - szz) ** 2 + (szz - sxx) ** 2)
        + 3.0 * (sxy ** 2 + syz ** 2 + sxz ** 2)
    )


def principal_stresses(stress) -> np.ndarray:
    """
    Principal stresses of one Voigt stress vector, sorted σ1 ≥ σ2 ≥ σ3.

    >>> principal_stresses([1.0, 2.0, 3.0, 0, 0, 0]).tolist()
    [3.0, 2.0, 1.0]
    """
    tensor = vector_to_tensor(stress)
    return np.sort(np.linalg.eigvalsh(tensor.data))[::-1]


def equivalent_strain(strain) -> np.ndarray:
    """
    Equivalent (von Mises) strain of Voigt strain vectors with engineering
    shear, shape (..., 6) → (...).
    """
    e = np.asarray(strain, dtype=float)
    exx, eyy, ezz, gxy, gyz, gxz = (e[..., k] for k in range(6))
    return (np.sqrt(2.0) / 3.0) * np.sqrt(
        (exx - eyy) ** 2 + (eyy - ezz) ** 2 + (ezz - exx) ** 2
        + 1.5 * (gxy ** 2 + gyz ** 2 + gxz ** 2)
    )


def nodal_results_frame(model: Model, step: int = -1) -> pd.DataFrame:
    """
    One row per node: coordinates and displacement at a result step.

    Columns: node, x, y, z, ux, uy, uz, u_mag
    """
    rows = []
    for nid in sorted(model.nodes):
        node = model.nodes[nid]
        u = node.displacement(step)
        rows.append({
            "node": nid, "x": node.x, "y": node.y, "z": node.z,
            "ux": u[0], "uy": u[1], "uz": u[2],
            "u_mag": float(np.linalg.norm(u)),
        })
    return pd.DataFrame(rows, columns=["node", "x", "y", "z", "ux", "uy", "uz", "u_mag"])


def element_results_frame(model: Model, step: int = -1) -> pd.DataFrame:
    """
    One row per (element, node): nodal stress components, von Mises stress
    and equivalent strain at a result step.
    """
    columns = (["element", "part", "node"] + [f"S{c}" for c in STRESS_COMPONENTS]
               + ["von_mises", "equivalent_strain"])
    rows = []
    for eid in sorted(model.elements):
        element = model.elements[eid]
        if not element.stress:
            continue
        stress = element.stress[step]
        strain = element.strain[step]
        vm = von_mises(stress)
        eq = equivalent_strain(strain)
        for k, nid in enumerate(element.nodes):
            row = {"element": eid, "part": element.part_id, "node": nid}
            row.update({f"S{c}": stress[k, j] for j, c in enumerate(STRESS_COMPONENTS)})
            row["von_mises"] = float(vm[k])
            row["equivalent_strain"] = float(eq[k])
            rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def export_results_csv(model: Model, directory: Union[str, Path], step: int = -1) -> Path:
    """Write nodes.csv and elements.csv for a result step into directory."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    nodal_results_frame(model, step).to_csv(directory / "nodes.csv", index=False)
    element_results_frame(model, step).to_csv(directory / "elements.csv", index=False)
    return directory
