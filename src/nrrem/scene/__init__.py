"""Scene construction from scenario configuration."""

from nrrem.scene.builder import Scene, build_engine, build_scene

__all__ = ["Scene", "build_engine", "build_scene"]
