"""Image upload pipeline and gallery catalogue.

This package validates uploaded images, squeezes oversized ones under
the remote host's size budget, optionally converts them to WebP or
AVIF, forwards them to the image host and keeps a local, categorised
gallery of what was uploaded. See individual modules for details.
"""

__version__ = "0.1.0"
