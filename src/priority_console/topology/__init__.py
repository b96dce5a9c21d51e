"""
priority_console.topology

Service topology package.

Responsibilities:
- Typed endpoint/service descriptors.
- Loading and normalizing the declarative topology file.
"""

# Package marker.
