# SPDX-FileCopyrightText: 2022-2025 Joshua Taylor Eppinette
# SPDX-License-Identifier: MIT
"""A logfmt encoder with python-logging formatter and handler adapters."""

from logfmt_encoder.encoder import (
    TRACE,
    Level,
    LogfmtEncoder,
    Redaction,
    encode,
    format_string,
    format_value,
)
from logfmt_encoder.formatter import Logfmter
from logfmt_encoder.handler import LogfmtHandler

__version__ = "0.1.0"
__all__ = (
    "TRACE",
    "Level",
    "LogfmtEncoder",
    "LogfmtHandler",
    "Logfmter",
    "Redaction",
    "encode",
    "format_string",
    "format_value",
)
