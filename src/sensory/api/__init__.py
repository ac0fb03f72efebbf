"""
Sensory Dashboard API
HTTP routes and WebSocket streaming over the mixer engine
"""
