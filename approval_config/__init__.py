"""
approval_config -- single public entrypoint for governance settings.

Responsibility:
    Provides the one way to obtain the approval governance policy at
    runtime through ``get_active_policy()``: YAML is loaded, validated,
    checksummed and bridged into the kernel's frozen ``GovernancePolicy``.

Architecture position:
    Configuration -- sits above ``approval_kernel``.  The kernel MUST
    NEVER import from ``approval_config``; ``bridges`` translates settings
    into kernel value objects.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- missing keys, non-numeric values or
      validation failures; ``errors`` lists every problem found.

Audit relevance:
    Every successful ``get_active_policy()`` call emits an
    ``APPROVAL_CONFIG_TRACE`` log entry with the config id, version, path
    and checksum.  The checksum is also carried on the returned policy.
"""

from __future__ import annotations

from pathlib import Path

from approval_config.bridges import build_policy
from approval_config.loader import load_yaml_file, parse_settings
from approval_config.validator import validate_settings
from approval_kernel.domain.policy import GovernancePolicy
from approval_kernel.exceptions import ConfigurationError
from approval_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_policy(config_path: Path | str | None = None) -> GovernancePolicy:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML settings file.  Defaults to the packaged
            ``defaults.yaml``.

    Returns:
        GovernancePolicy built from validated settings.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ConfigurationError: If the settings cannot be parsed or fail
            validation.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)

    try:
        settings = parse_settings(data)
    except KeyError as exc:
        raise ConfigurationError([f"missing required setting {exc.args[0]!r}"]) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigurationError([str(exc)]) from exc

    validation = validate_settings(settings)
    if not validation.is_valid:
        raise ConfigurationError(validation.errors)

    policy = build_policy(settings)

    _logger.info(
        "APPROVAL_CONFIG_TRACE",
        extra={
            "trace_type": "APPROVAL_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "config_path": str(path),
            "checksum": settings.checksum,
        },
    )
    return policy


__all__ = ["DEFAULT_CONFIG_PATH", "get_active_policy"]
