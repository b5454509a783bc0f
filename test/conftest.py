"""
Test configuration for the Flax interpreter tests
"""

import io
import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import run_source


@pytest.fixture
def examples_dir():
  """Directory holding the sample .flax programs"""
  return project_root / "examples"


@pytest.fixture
def run_flax():
  """Run Flax source and return the lines it printed"""
  def run(source: str, **kwargs):
    output = io.StringIO()
    run_source(source, output=output, **kwargs)
    return output.getvalue().splitlines()

  return run
