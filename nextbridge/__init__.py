"""
nextbridge

Rewrites a serverless function descriptor between its packaged (container
image) form and a locally spawned Next.js development server.
"""

__version__ = "0.3.0"

PLUGIN_NAME = "next"
