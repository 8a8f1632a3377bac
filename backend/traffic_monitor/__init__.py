"""Live Singapore road speed, incident and AI-insight feeds for map and summary views."""
