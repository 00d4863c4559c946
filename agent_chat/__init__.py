"""Agent chat backend: conversation store, agent registry and SSE turn delivery."""
