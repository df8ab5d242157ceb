"""
Code generation for eventgen.

Emitters turn the compiled EntitySpec IR into source code. The Python
emitter is the only backend.
"""

from .emitter import emit_entity, emit_module, write_module

__all__ = ["emit_entity", "emit_module", "write_module"]
