# stan_solid/v3d/bdf.py
"""
BULK-DATA IMPORT: Nastran GRID/CHEXA/CTETRA/CPENTA Cards
========================================================

PURPOSE:
--------
Read solid meshes written by common pre-processors in Nastran bulk-data
format and turn them into a Model (nodes, elements, parts).

SUPPORTED INPUT:
----------------
- Small fixed-field cards (8-character fields) and free-field cards
  (comma separated)
- Continuation lines starting with "+" or with a wholly blank first field;
  a card name indented away from column 1 is reported, not merged
- Nastran's compact reals: "1.5-3" means 1.5e-3, ".5" means 0.5
- Lines starting with "$" are comments

Every card that can't be understood is reported in the returned error
list and skipped; one bad line never aborts the import.

DEFAULTS:
---------
Parts are created for every distinct element PID, in ascending order,
with the default formulations (CHEXA → HEX8_G2, CTETRA → TET4_G2,
CPENTA → PENTA6_G2). Materials must be assigned afterwards.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from ..errors import ModelIntegrityError
from .model import Model

logger = logging.getLogger(__name__)

# card name → (shape family, node count)
SOLID_CARDS = {
    "CHEXA": ("HEX8", 8),
    "CTETRA": ("TET4", 4),
    "CPENTA": ("PENTA6", 6),
}

_COMPACT_EXPONENT = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+))([+-]\d+)$")


def parse_real(text: str) -> float:
    """
    Parse a Nastran real field.

    >>> parse_real("1.5-3")
    0.0015
    >>> parse_real("-.25")
    -0.25
    >>> parse_real("")
    0.0
    """
    s = text.strip().upper().replace("D", "E")
    if not s:
        return 0.0
    if "E" not in s:
        match = _COMPACT_EXPONENT.match(s)
        if match:
            s = f"{match.group(1)}E{match.group(2)}"
    return float(s)


def _fixed_fields(line: str) -> List[str]:
    """Ten 8-character fields of a small-field line."""
    line = line.rstrip("\n").ljust(80)
    return [line[i:i + 8].strip() for i in range(0, 80, 8)]


def _data_fields(line: str) -> List[str]:
    """Data fields 1-8 of a line (card/continuation name and trailing marker dropped)."""
    if "," in line:
        tokens = [t.strip() for t in line.rstrip("\n").split(",")]
        return tokens[1:9]
    return _fixed_fields(line)[1:9]


def _name_field(line: str) -> str:
    return line.split(",")[0] if "," in line else line[:8]


def _is_continuation(line: str) -> bool:
    """A "+" marker or a wholly blank first field."""
    name = _name_field(line).strip()
    return not name or name.startswith("+")


def read_cards(lines: Iterable[str]) -> List[Tuple[str, List[str], str]]:
    """
    Group lines into cards.

    Returns:
        List of (card name, data fields, raw text) tuples
    """
    cards = []
    for raw in lines:
        line = raw.rstrip("\n")
        if not line.strip() or line.startswith("$"):
            continue
        if _is_continuation(line) and cards:
            name, fields, text = cards[-1]
            cards[-1] = (name, fields + _data_fields(line), text + "\n" + line)
            continue
        # leading blanks are kept so that a shifted card is not mistaken for a known one
        cards.append((_name_field(line).rstrip().upper(), _data_fields(line), line))
    return cards


def read_bulk_data(source: Union[str, Path, Iterable[str]]) -> Tuple[Model, List[str]]:
    """
    Build a Model from bulk-data text.

    Parameters:
    -----------
    source : str, Path or Iterable[str]
        A file path, or the lines themselves

    Returns:
    --------
    model : Model
        Nodes, elements and parts (no materials, BCs or results)
    errors : List[str]
        Raw text of every card that could not be imported
    """
    if isinstance(source, (str, Path)):
        with open(source, "r", encoding="utf-8", errors="replace") as fh:
            lines = fh.readlines()
    else:
        lines = list(source)

    model = Model()
    errors: List[str] = []
    pending = []

    for name, fields, text in read_cards(lines):
        if name == "GRID":
            try:
                node_id = int(fields[0])
                x, y, z = (parse_real(f) for f in fields[2:5])
                model.add_node(node_id, x, y, z)
            except (ValueError, IndexError, ModelIntegrityError):
                errors.append(text)
        elif name in SOLID_CARDS:
            pending.append((name, fields, text))
        elif name.strip() == "GRID" or name.strip() in SOLID_CARDS:
            # card name not starting in column 1: fields are misaligned
            errors.append(text)

    # elements after all nodes: GRIDs may follow the element cards
    for name, fields, text in pending:
        shape, n_nodes = SOLID_CARDS[name]
        try:
            element_id = int(fields[0])
            part_id = int(fields[1])
            node_ids = [int(f) for f in fields[2:] if f]
            if len(node_ids) != n_nodes:
                raise ValueError(f"{name} {element_id}: {len(node_ids)} nodes, expected {n_nodes}")
            if part_id not in model.parts:
                model.add_part(part_id, name=f"Part {part_id}")
            model.add_element(element_id, model.parts[part_id].formulations[shape], part_id, node_ids)
        except (ValueError, IndexError, ModelIntegrityError):
            errors.append(text)

    model.parts = dict(sorted(model.parts.items()))
    if errors:
        logger.warning("Bulk-data import: %d card(s) could not be read", len(errors))
    logger.info("Bulk-data import: %d nodes, %d elements, %d parts",
                len(model.nodes), len(model.elements), len(model.parts))
    return model, errors
