"""
intentflow Test Suite

Unit tests for the orchestration core, tools, model adapters and services.
Run tests with: pytest tests/
Tests marked ``integration`` need a real GOOGLE_API_KEY: pytest -m integration
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
