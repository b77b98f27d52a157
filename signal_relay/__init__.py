"""
Signal Relay: room membership and negotiation-message routing over WebSockets
"""
