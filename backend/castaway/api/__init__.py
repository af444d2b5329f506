"""HTTP and WebSocket routers"""
