"""Tool plugin contract shared by the CLI and every Shipyard plugin."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from shipyard_core.context import ExecutionContext


class ResultStatus(Enum):
    """How a tool run ended, and the process exit code it maps to.

    PARTIAL is an UNSTABLE pipeline: everything ran, but the operator
    has warnings to look at.
    """

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"
    CANCELLED = "cancelled"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]

    @property
    def label(self) -> str:
        """CI-style status word (SUCCESS / FAILED / UNSTABLE / CANCELLED)."""
        return _LABELS[self]


_EXIT_CODES = {
    ResultStatus.SUCCESS: 0,
    ResultStatus.FAILURE: 1,
    ResultStatus.PARTIAL: 2,
    ResultStatus.CANCELLED: 130,
}

_LABELS = {
    ResultStatus.SUCCESS: "SUCCESS",
    ResultStatus.FAILURE: "FAILED",
    ResultStatus.PARTIAL: "UNSTABLE",
    ResultStatus.CANCELLED: "CANCELLED",
}


@dataclass(frozen=True)
class ToolResult:
    """What a plugin run hands back to the CLI.

    Attributes:
        status: How the run ended.
        summary: One line for the console.
        data: JSON-serializable details (counts, image names, failed targets).
        artifacts: Artifact name -> file path for scan JSON, HTML reports
                   and build logs the run produced.
    """

    status: ResultStatus
    summary: str
    data: dict[str, Any] = field(default_factory=dict)
    artifacts: dict[str, str] = field(default_factory=dict)

    @classmethod
    def failure(cls, summary: str, data: Optional[dict[str, Any]] = None) -> "ToolResult":
        return cls(status=ResultStatus.FAILURE, summary=summary, data=data or {})


ParamType = Literal["str", "int", "float", "bool", "path"]

SUBCOMMAND_PARAM = "command"


@dataclass(frozen=True)
class ToolParam:
    """One option a tool accepts; the CLI turns these into argparse flags.

    Attributes:
        name: Hyphenated option name ("build-timeout" -> --build-timeout).
        description: Help text.
        type: "str", "int", "float", "bool" or "path". Bools become
              --name/--no-name pairs.
        required: Whether the option must be given.
        default: Value used when the option is omitted.
        choices: Allowed values, if restricted. A "command" param with
                 choices is treated as a positional subcommand.
    """

    name: str
    description: str
    type: ParamType = "str"
    required: bool = False
    default: Any = None
    choices: list[str] | None = None

    @property
    def flag(self) -> str:
        return f"--{self.name}"

    @property
    def dest(self) -> str:
        """Key this param arrives under in the plugin's args dict."""
        return self.name.replace("-", "_")

    @property
    def is_subcommand(self) -> bool:
        return self.name == SUBCOMMAND_PARAM and bool(self.choices)


@runtime_checkable
class ToolPlugin(Protocol):
    """What every Shipyard tool implements.

    Plugins are plain classes; nothing needs to be subclassed:

        class DigestPlugin:
            name = "digest"
            description = "Print the digest of a built image"
            version = "1.0.0"
            requires_auth = False

            def get_params(self) -> list[ToolParam]:
                return [ToolParam(name="image", description="Image reference", required=True)]

            def run(self, args: dict[str, Any], ctx: ExecutionContext) -> ToolResult:
                ctx.progress(0.0, f"Inspecting {args['image']}")
                ...
                return ToolResult(status=ResultStatus.SUCCESS, summary=digest)

    Set requires_auth when the CLI should resolve registry credentials
    before calling run().
    """

    name: str
    description: str
    version: str
    requires_auth: bool

    def get_params(self) -> list[ToolParam]:
        ...

    def run(self, args: dict[str, Any], ctx: ExecutionContext) -> ToolResult:
        """Do the work.

        Args:
            args: Parameter values keyed by ToolParam.dest, already coerced
                  to the declared types.
            ctx: Credentials, user config, progress reporting and cancellation.
        """
        ...
