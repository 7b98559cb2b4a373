"""Shipyard plugin: pipeline - build, scan, report on and publish container images."""

from shipyard_pipeline.plugin import PipelinePlugin


def create_plugin() -> PipelinePlugin:
    """Entry point for Shipyard plugin discovery."""
    return PipelinePlugin()
