"""Service layer: conversation stores, turn orchestration and the SSE wire format."""
