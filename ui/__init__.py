"""Web API for autoscene."""
