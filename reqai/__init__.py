"""
ReqAI: document extraction, requirements conversation and backlog generation.
"""

__version__ = "1.0.0"
