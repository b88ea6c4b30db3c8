"""Chart specifications and rasterization."""
