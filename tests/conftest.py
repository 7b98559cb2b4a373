"""Fixtures for the core and CLI tests."""

import pytest

from shipyard_core.plugin import ResultStatus, ToolParam, ToolResult


@pytest.fixture
def sample_tool_params():
    """A required string, an int with a default and two bool toggles."""
    return [
        ToolParam(name="targets", description="Targets to build", required=True),
        ToolParam(name="build-timeout", description="Timeout", type="int", default=1800),
        ToolParam(name="parallel", description="Build concurrently", type="bool"),
        ToolParam(name="cache", description="Use build cache", type="bool", default=True),
    ]


class DigestPlugin:
    name = "digest"
    description = "Report the digest of an image"
    version = "0.1.0"
    requires_auth = False

    def get_params(self):
        return [ToolParam(name="image", description="Image reference", required=True)]

    def run(self, args, ctx):
        return ToolResult(
            status=ResultStatus.SUCCESS,
            summary=f"Digest of {args['image']}",
            data={"image": args["image"]},
        )


@pytest.fixture
def mock_plugin():
    return DigestPlugin()
