"""
Model Gateway: Multi-Provider Routing for Chat Completions

Routes chat/completion requests across interchangeable AI model providers,
selecting a provider through a pluggable routing policy, failing over on
provider errors, and tracking per-model latency, error and cost statistics
to inform future routing decisions.
"""

__version__ = "0.1.0"
