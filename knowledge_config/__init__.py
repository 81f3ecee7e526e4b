"""
knowledge_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain the approval workflow configuration
    at runtime through ``get_workflow_config()``.  Returns a
    ``WorkflowConfig`` -- the sole runtime artifact.

Architecture position:
    Configuration -- YAML-driven policy pipeline.  Sits above
    ``knowledge_kernel`` and below ``knowledge_services``.  The kernel
    MUST NEVER import from ``knowledge_config``.

Invariants enforced:
    - The transition table must pass validation before a config is
      produced.
    - Deterministic: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``WorkflowConfigError`` -- validation failed; ``errors`` lists
      every problem found.
"""

from __future__ import annotations

import logging
from pathlib import Path

from knowledge_kernel.exceptions import WorkflowConfigError

from knowledge_config.compiler import WorkflowConfig, compile_workflow
from knowledge_config.loader import load_configuration
from knowledge_config.validator import validate_configuration

_logger = logging.getLogger("knowledge_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "workflow.yaml"


def get_workflow_config(config_path: Path | None = None) -> WorkflowConfig:
    """Load, validate and compile the workflow configuration.

    Args:
        config_path: Override path to a workflow YAML file.  Defaults
            to the packaged ``workflow.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        WorkflowConfigError: If validation fails.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config_set = load_configuration(path)

    validation = validate_configuration(config_set)
    for warning in validation.warnings:
        _logger.warning("workflow_config_warning", extra={"detail": warning})
    if not validation.is_valid:
        raise WorkflowConfigError(validation.errors)

    config = compile_workflow(config_set)

    _logger.info(
        "workflow_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "transition_count": len(config.table),
            "max_batch_size": config.max_batch_size,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "WorkflowConfig",
    "get_workflow_config",
]
