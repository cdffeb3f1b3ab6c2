"""
Pytest configuration and fixtures for Orbit tests.

This module provides shared fixtures used across unit and integration
tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from orbit.agent.loop import AgentConfig
from orbit.context import ExecutionContext
from orbit.schema import RunConfig


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def context() -> ExecutionContext:
    """A fresh execution context."""
    return ExecutionContext()


@pytest.fixture
def fast_config() -> AgentConfig:
    """Agent configuration without retry delays."""
    return AgentConfig(retry_delay_seconds=0.0)


@pytest.fixture
def task() -> RunConfig:
    """A small run configuration."""
    return RunConfig(name="lookup", description="Find the answer", max_rounds=5)


@pytest.fixture
def sample_run_yaml() -> str:
    """Return a simple run configuration YAML for testing."""
    return """
name: weather
description: Find today's weather in Paris
tools: []
output_description: A one-line weather summary
max_rounds: 10
model:
  model: claude-sonnet-4-5
  max_tokens: 2048
compaction: image-prune
background:
  - The user lives in Paris
"""
