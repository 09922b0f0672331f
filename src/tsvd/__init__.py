"""tsvd: review-before-write editing of tab-separated tables driven by tool calls."""

__version__ = "0.1.0"
