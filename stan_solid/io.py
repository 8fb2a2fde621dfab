# stan_solid/io.py
"""Persist models (with their result history) to disk and load them back."""

import logging
from pathlib import Path
from typing import Union

import joblib

from .errors import ModelIntegrityError
from .v3d.model import Model

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def save_model(model: Model, path: PathLike, compress: int = 3) -> Path:
    """
    Write a model to path, replacing any existing file.

    Transient solver buffers are dropped first; committed results are kept.
    """
    path = Path(path)
    model.clear_transient()
    joblib.dump(model, path, compress=compress)
    logger.info("Model saved to %s", path)
    return path


def load_model(path: PathLike) -> Model:
    """
    Read a model written by save_model.

    Raises:
        FileNotFoundError: path does not exist
        ModelIntegrityError: The file does not contain a Model
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")
    model = joblib.load(path)
    if not isinstance(model, Model):
        raise ModelIntegrityError(f"{path} does not contain a model (found {type(model).__name__})")
    logger.info("Model loaded from %s", path)
    return model
