"""GenQuota: quota-gated image generation with subscription billing."""

__version__ = "0.1.0"
