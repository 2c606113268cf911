"""nldevicessetup — recipe-driven low-latency tuning for A/V production machines."""

__version__ = "0.1.0"
