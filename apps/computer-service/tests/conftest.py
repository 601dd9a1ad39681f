"""Pytest configuration for computer-service tests.

Run tests with: pytest apps/computer-service/tests/
"""

import sys
from pathlib import Path

# Add the service src/ directory to path for flat imports (core, domain, ...)
service_src = Path(__file__).parent.parent / "src"
if str(service_src) not in sys.path:
    sys.path.insert(0, str(service_src))
