"""Single-player console variant of the island game"""
