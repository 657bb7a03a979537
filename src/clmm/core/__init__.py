"""
CLMM Core Module

Ambient building blocks shared by the engine:
- Configuration read from the environment
- Structured JSON logging
- Typed exception hierarchy and reason codes

The engine itself lives in clmm.core.amm.
"""

__all__ = []
