"""Feature flag providers for GO Feature Flag, LaunchDarkly and Harness with a shared resolution model."""

__version__ = "0.1.0"