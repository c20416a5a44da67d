"""flakeswarm: hunt flaky failures across a fleet of remote workers."""
__version__ = "0.1.0"
