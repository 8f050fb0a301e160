"""
Process invocation interface.

This module provides:
- ProcessManager: The interface shared by all backends
- LocalProcessManager: Spawns real OS processes
- Process / ProcessResult / ByteStream: Invocation handles and results
- get_executable_path: PATH / PATHEXT resolution
"""

from .executable import Platform, get_executable_path
from .local import LocalProcess, LocalProcessManager
from .manager import Command, ProcessManager
from .process import (
    SYSTEM_ENCODING,
    ByteStream,
    Output,
    Process,
    ProcessResult,
    ProcessStartMode,
    codec_for,
    decode_output,
    encode_output,
    normalize_encoding,
)

__all__ = [
    # Manager
    "Command",
    "ProcessManager",
    "LocalProcessManager",
    # Process
    "Process",
    "LocalProcess",
    "ProcessResult",
    "ProcessStartMode",
    "ByteStream",
    "Output",
    # Encodings
    "SYSTEM_ENCODING",
    "normalize_encoding",
    "codec_for",
    "decode_output",
    "encode_output",
    # Executable resolution
    "Platform",
    "get_executable_path",
]
