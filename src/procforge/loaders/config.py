"""Loaders for the JSON process configuration and business object state files."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import TypeVar

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from procforge.errors import MalformedModelError
from procforge.models.business import StateModel
from procforge.models.process_config import ProcessConfigFile

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def read_json_model(path: Path, model: type[ModelT], artifact: str) -> ModelT:
    """Read a JSON file and validate it against a Pydantic model.

    Raises:
        MalformedModelError: If the file is unreadable, not JSON, or does not
            match the model
    """
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise MalformedModelError(artifact, f"cannot read file: {exc}", path) from exc
    try:
        return model.model_validate_json(data)
    except PydanticValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        raise MalformedModelError(artifact, detail, path) from exc


class ProcessConfigLoader:
    """Load the process configuration file (global variables, lanes, tasks, SMTP)."""

    def load(self, path: Path) -> ProcessConfigFile:
        config = read_json_model(path, ProcessConfigFile, "process-config")

        duplicates = [
            name for name, count in Counter(v.name for v in config.global_variables).items()
            if count > 1
        ]
        if duplicates:
            raise MalformedModelError(
                "process-config", f"duplicate global variables: {', '.join(sorted(duplicates))}", path
            )

        logger.info(
            "process_config_loaded",
            path=str(path),
            processes=len(config.processes),
            global_variables=len(config.global_variables),
            smtp=config.smtp_config is not None,
        )
        return config


class StateModelLoader:
    """Load business object states: ``{"classes": [{"name", "states": [...]}]}``."""

    def load(self, path: Path) -> StateModel:
        model = read_json_model(path, StateModel, "states")
        logger.info("states_loaded", path=str(path), classes=len(model.classes))
        return model
