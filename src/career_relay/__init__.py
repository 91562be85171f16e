# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""
career-relay
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .cache import Cache
from .classifier import ReferenceClassifier, classify, is_ephemeral_reference
from .config import RelayConfig
from .factory import RelayFactory, RelayServices, build_services
from .relay import FileRelayService
from .sweep import ReconciliationSweep, run_sweep

__all__ = [
    "Cache",
    "FileRelayService",
    "ReconciliationSweep",
    "ReferenceClassifier",
    "RelayConfig",
    "RelayFactory",
    "RelayServices",
    "build_services",
    "classify",
    "is_ephemeral_reference",
    "run_sweep",
]
