"""Build plugins bundled with buildgraph."""
