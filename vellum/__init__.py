"""
VELLUM - Verified Effortless LaTeX Layout with Unified Memoization

Document synthesis and artifact-caching engine for a resume builder. Turns a
structured resume snapshot plus a template into a compiled PDF, and avoids
redundant recompilation through a content-addressable cache that survives
process reloads.

Architecture:
- Templating Context: Template registry, LaTeX escaping, placeholder substitution
- Rendering Context: External TeX toolchain invocation and failure classification
- Caching Context: Fingerprinting, artifact store, durable storage backends
- Session Context: Render state machine and session lifecycle
"""

__version__ = "0.1.0"
