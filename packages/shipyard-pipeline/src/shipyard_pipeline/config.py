"""
Pipeline configuration: build catalog loading, reference validation and
the settings object assembled from CLI arguments and the user config file.
"""

from __future__ import annotations

import fnmatch
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from shipyard_pipeline.constants import (
    ALLOWED_REF_PATTERNS,
    DEFAULT_ALLOWLIST,
    DEFAULT_BUILD_TIMEOUT,
    DEFAULT_CATALOG_FILE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_POLICY,
    DEFAULT_SCAN_SEVERITIES,
    DEFAULT_SCAN_TIMEOUT,
    DEFAULT_SELECTION,
    REF_PREFIXES,
)
from shipyard_pipeline.exceptions import ConfigurationError
from shipyard_pipeline.models import BuildTarget, FailurePolicy, Severity

logger = logging.getLogger(__name__)

MAX_TAG_LENGTH = 128
_INVALID_TAG_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def derive_version_tag(ref: str) -> str:
    """
    Validate a git reference and turn it into an image tag.

    Args:
        ref: Branch or tag name, optionally fully qualified
             (e.g. "release/1.8", "refs/tags/v2.0.1")

    Returns:
        Image tag, e.g. "release-1.8" or "v2.0.1"

    Raises:
        ConfigurationError: If the reference does not match v* or release*
    """
    if not ref or not ref.strip():
        raise ConfigurationError("A git reference is required (e.g. v1.2.0 or release/1.8)")

    ref = ref.strip()
    for prefix in REF_PREFIXES:
        if ref.startswith(prefix):
            ref = ref[len(prefix):]
            break

    if not any(fnmatch.fnmatchcase(ref, pattern) for pattern in ALLOWED_REF_PATTERNS):
        raise ConfigurationError(
            f"Invalid reference '{ref}': must match one of {', '.join(ALLOWED_REF_PATTERNS)} "
            "(e.g. v1.2.0, release/1.8)"
        )

    return _INVALID_TAG_CHARS.sub("-", ref.replace("/", "-"))[:MAX_TAG_LENGTH]


def parse_catalog(data: Any, source: str = "catalog") -> dict[str, BuildTarget]:
    """
    Build the target catalog from parsed YAML.

    Expected shape:

        targets:
          web:
            build_file: docker/web.Dockerfile
            tag: acme/web
            context: .        # optional

    Args:
        data: Parsed YAML document (mapping with a "targets" key)
        source: Label used in error messages

    Returns:
        Mapping of target name to BuildTarget, in file order

    Raises:
        ConfigurationError: On any schema violation
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{source}: top level must be a mapping")

    targets = data.get("targets")
    if not isinstance(targets, Mapping) or not targets:
        raise ConfigurationError(f"{source}: 'targets' must be a non-empty mapping")

    catalog: dict[str, BuildTarget] = {}
    for name, entry in targets.items():
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"{source}: target names must be non-empty strings")
        if not isinstance(entry, Mapping):
            raise ConfigurationError(f"{source}: target '{name}' must be a mapping")

        missing = [key for key in ("build_file", "tag") if not entry.get(key)]
        if missing:
            raise ConfigurationError(
                f"{source}: target '{name}' is missing {', '.join(missing)}"
            )

        catalog[name] = BuildTarget(
            name=name,
            build_file=str(entry["build_file"]),
            tag=str(entry["tag"]),
            context=str(entry.get("context") or "."),
        )

    return catalog


def load_catalog(path: Path) -> dict[str, BuildTarget]:
    """Load the build catalog from a YAML file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Catalog file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Catalog file {path} is not valid YAML: {e}") from e

    catalog = parse_catalog(data, source=str(path))
    logger.debug(f"Loaded {len(catalog)} targets from {path}")
    return catalog


def parse_severity_list(text: str, option: str = "severities") -> tuple[Severity, ...]:
    """
    Parse a comma-separated severity list such as "HIGH,CRITICAL".

    Input is case-insensitive; the result is ordered least to most severe.

    Raises:
        ConfigurationError: On unknown names or an empty list
    """
    tokens = [t.strip().upper() for t in (text or "").split(",") if t.strip()]
    if not tokens:
        raise ConfigurationError(f"--{option} must name at least one severity")

    unknown = [t for t in tokens if Severity.parse(t) is None]
    if unknown:
        raise ConfigurationError(
            f"Unknown severity in --{option}: {', '.join(unknown)}. "
            f"Valid: {', '.join(s.value for s in Severity)}"
        )

    chosen = {Severity(t) for t in tokens}
    return tuple(s for s in Severity if s in chosen)


def parse_policy(text: str) -> FailurePolicy:
    """Parse a failure policy name ("fail-build" or "warn-only")."""
    try:
        return FailurePolicy((text or "").strip().lower())
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid policy '{text}': choose one of "
            f"{', '.join(p.value for p in FailurePolicy)}"
        ) from e


@dataclass(frozen=True)
class PipelineSettings:
    """Everything a pipeline run needs, validated up front."""

    ref: Optional[str]
    selection: str = DEFAULT_SELECTION
    strict: bool = False
    policy: FailurePolicy = FailurePolicy(DEFAULT_POLICY)
    allowlist: tuple[Severity, ...] = (Severity.HIGH, Severity.CRITICAL)
    scan_severities: tuple[Severity, ...] = tuple(Severity)
    use_cache: bool = True
    parallel: bool = False
    push: bool = False
    registry: Optional[str] = None
    build_timeout: int = DEFAULT_BUILD_TIMEOUT
    scan_timeout: int = DEFAULT_SCAN_TIMEOUT
    max_workers: int = 0
    catalog_path: Path = Path(DEFAULT_CATALOG_FILE)
    output_dir: Path = Path(DEFAULT_OUTPUT_DIR)
    template_dir: Optional[Path] = None
    ignore_unfixed: bool = True

    @property
    def version_tag(self) -> str:
        if self.ref is None:
            raise ConfigurationError("--ref is required for this command")
        return derive_version_tag(self.ref)

    @classmethod
    def from_args(
        cls, args: Mapping[str, Any], config: Optional[Mapping[str, Any]] = None
    ) -> "PipelineSettings":
        """
        Build settings from parsed CLI args, falling back to the user config.

        Args:
            args: Plugin args (underscored keys, as produced by argparse)
            config: User config dict; supplies "registry" and "catalog_file"
                    when the CLI leaves them unset

        Raises:
            ConfigurationError: On invalid policy, severities or timeouts
        """
        config = config or {}

        def pick(key: str, default: Any) -> Any:
            value = args.get(key)
            return default if value is None else value

        build_timeout = int(pick("build_timeout", DEFAULT_BUILD_TIMEOUT))
        scan_timeout = int(pick("scan_timeout", DEFAULT_SCAN_TIMEOUT))
        if build_timeout <= 0 or scan_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive numbers of seconds")

        max_workers = int(pick("max_workers", 0))
        if max_workers < 0:
            raise ConfigurationError("--max-workers cannot be negative")

        template_dir = args.get("template_dir")

        return cls(
            ref=args.get("ref"),
            selection=pick("targets", DEFAULT_SELECTION),
            strict=bool(args.get("strict", False)),
            policy=parse_policy(pick("policy", DEFAULT_POLICY)),
            allowlist=parse_severity_list(pick("severities", DEFAULT_ALLOWLIST), "severities"),
            scan_severities=parse_severity_list(
                pick("scan_severities", DEFAULT_SCAN_SEVERITIES), "scan-severities"
            ),
            use_cache=bool(pick("cache", True)),
            parallel=bool(args.get("parallel", False)),
            push=bool(args.get("push", False)),
            registry=args.get("registry") or config.get("registry"),
            build_timeout=build_timeout,
            scan_timeout=scan_timeout,
            max_workers=max_workers,
            catalog_path=Path(
                args.get("catalog") or config.get("catalog_file") or DEFAULT_CATALOG_FILE
            ),
            output_dir=Path(pick("output_dir", DEFAULT_OUTPUT_DIR)),
            template_dir=Path(template_dir) if template_dir else None,
            ignore_unfixed=bool(pick("ignore_unfixed", True)),
        )

    def load_catalog(self, config: Optional[Mapping[str, Any]] = None) -> dict[str, BuildTarget]:
        """
        Load the catalog file, or the inline "catalog" block of the user config
        when the file does not exist.
        """
        if not self.catalog_path.exists() and config and config.get("catalog"):
            logger.debug(f"{self.catalog_path} not found, using catalog from user config")
            return parse_catalog(config["catalog"], source="user config catalog")
        return load_catalog(self.catalog_path)
