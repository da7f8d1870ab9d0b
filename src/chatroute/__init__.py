"""chatroute - intent routing and quota-aware Gemini gateway for a chat assistant."""

__version__ = "0.4.0"
